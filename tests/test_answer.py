from urllib.parse import parse_qs, urlparse

import pytest
import responses

from microsvc.answer import (
    IMAGE_BASE_URL,
    NO_ANSWER,
    RELATED_PREFIX,
    Answer,
    QuestionResponse,
    answer_from_result,
)
from microsvc.errors import ServiceError, bad_request

API_URL = "https://answers.example.com/"


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_abstract_is_preferred():
    result = {
        "Abstract": "An abstract",
        "AbstractText": "Some text",
        "AbstractURL": "https://example.com/abstract",
        "Image": "/i/picture.png",
        "RelatedTopics": [{"Text": "topic", "FirstURL": "https://example.com/t", "Icon": {"URL": "/i/t.png"}}],
    }
    rsp = answer_from_result(result)
    assert rsp == QuestionResponse(
        answer="An abstract",
        url="https://example.com/abstract",
        image=IMAGE_BASE_URL + "/i/picture.png",
    )


def test_abstract_text_fallback():
    rsp = answer_from_result({"AbstractText": "Some text", "AbstractURL": "https://example.com/a"})
    assert rsp.answer == "Some text"
    assert rsp.url == "https://example.com/a"
    assert rsp.image == ""


def test_related_topic_fallback():
    topic = {"Text": "Related", "FirstURL": "https://example.com/r", "Icon": {"URL": "/i/r.png"}}
    rsp = answer_from_result({"RelatedTopics": [topic, {"Text": "other"}]})
    assert rsp.answer == RELATED_PREFIX + "Related"
    assert rsp.url == "https://example.com/r"
    assert rsp.image == IMAGE_BASE_URL + "/i/r.png"


def test_abstract_url_ignored_without_abstract():
    topic = {"Text": "Related", "FirstURL": "https://example.com/r", "Icon": {"URL": ""}}
    rsp = answer_from_result({"AbstractURL": "https://example.com/a", "RelatedTopics": [topic]})
    assert rsp.url == "https://example.com/r"
    assert rsp.image == IMAGE_BASE_URL


def test_no_answer():
    rsp = answer_from_result({"AbstractURL": "https://example.com/a", "Image": "/i/x.png"})
    assert rsp == QuestionResponse(answer=NO_ANSWER)


def test_empty_question_rejected():
    with pytest.raises(ServiceError) as exc:
        Answer(API_URL).question("")
    assert exc.value == bad_request("answer.question", "need a question")


def test_question_queries_api(mocked):
    mocked.get(API_URL, json={"Abstract": "An abstract", "AbstractURL": "https://example.com/a"})
    rsp = Answer(API_URL).question("what is a fish")
    assert rsp.answer == "An abstract"
    assert rsp.url == "https://example.com/a"
    params = parse_qs(urlparse(mocked.calls[0].request.url).query)
    assert params["q"] == ["what is a fish"]


def test_question_provider_failure(mocked):
    mocked.get(API_URL, status=500, body="boom")
    with pytest.raises(ServiceError) as exc:
        Answer(API_URL).question("anything")
    assert exc.value.id == "answer.question"
    assert exc.value.code == 500


def test_question_bad_body(mocked):
    mocked.get(API_URL, body="not json")
    with pytest.raises(ServiceError) as exc:
        Answer(API_URL).question("anything")
    assert exc.value.code == 500