from unittest import mock

import pytest
import responses

from microsvc.currency import Code, ConvertResult, Currency, ExpiringCache
from microsvc.errors import ServiceError, bad_request, internal_server_error

API = "https://rates.example.com/v6/placeholder"


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_cache_set_and_get():
    cache = ExpiringCache(60)
    cache.set("k", 1.5)
    assert cache.get("k") == 1.5
    assert cache.get("missing") is None


def test_cache_expiry():
    cache = ExpiringCache(60)
    with mock.patch("time.monotonic", return_value=1000.0):
        cache.set("k", "v")
        cache.set("forever", "v", ttl=-1)
    with mock.patch("time.monotonic", return_value=1059.0):
        assert cache.get("k") == "v"
    with mock.patch("time.monotonic", return_value=1061.0):
        assert cache.get("k") is None
        assert cache.get("forever") == "v"


def test_codes_parsed_and_cached(mocked):
    mocked.get(
        f"{API}/codes",
        json={"supported_codes": [["USD", "United States Dollar"], ["EUR", "Euro"]]},
    )
    svc = Currency(API)
    first = svc.codes()
    assert first == [Code("USD", "United States Dollar"), Code("EUR", "Euro")]
    assert svc.codes() == first
    assert len(mocked.calls) == 1


def test_codes_missing_list(mocked):
    mocked.get(f"{API}/codes", json={"result": "success"})
    with pytest.raises(ServiceError) as exc:
        Currency(API).codes()
    assert exc.value == internal_server_error("currency.rates", "failed to get rates")


def test_codes_non_200(mocked):
    mocked.get(f"{API}/codes", status=503, body="down")
    with pytest.raises(ServiceError) as exc:
        Currency(API).codes()
    assert exc.value == internal_server_error("currency.codes", "failed to get codes")


@pytest.mark.parametrize(
    "code, detail",
    [("", "missing code"), ("US", "code is invalid"), ("USDX", "code is invalid")],
)
def test_rates_validation(code, detail):
    with pytest.raises(ServiceError) as exc:
        Currency(API).rates(code)
    assert exc.value == bad_request("currency.rates", detail)


def test_rates_fetched_and_cached(mocked):
    mocked.get(f"{API}/latest/USD", json={"conversion_rates": {"USD": 1, "EUR": 0.9, "XXX": "n/a"}})
    svc = Currency(API)
    rates = svc.rates("USD")
    assert rates == {"USD": 1.0, "EUR": 0.9, "XXX": 0.0}
    assert svc.rates("USD") == rates
    assert len(mocked.calls) == 1


def test_rates_failure(mocked):
    mocked.get(f"{API}/latest/USD", status=500, body="oops")
    with pytest.raises(ServiceError) as exc:
        Currency(API).rates("USD")
    assert exc.value == internal_server_error("currency.rates", "failed to get rates")


@pytest.mark.parametrize(
    "date, detail",
    [("", "missing date"), ("yesterday", "invalid date"), ("2021-5-1", "invalid date")],
)
def test_history_date_validation(date, detail):
    with pytest.raises(ServiceError) as exc:
        Currency(API).history("USD", date)
    assert exc.value == bad_request("currency.history", detail)


def test_history_code_validation():
    with pytest.raises(ServiceError) as exc:
        Currency(API).history("", "2021-05-01")
    assert exc.value == bad_request("currency.rates", "missing code")


def test_history_fetched_and_cached(mocked):
    mocked.get(f"{API}/history/USD/2021/05/01", json={"conversion_rates": {"EUR": 0.82}})
    svc = Currency(API)
    assert svc.history("USD", "2021-05-01") == {"EUR": 0.82}
    assert svc.history("USD", "2021-05-01") == {"EUR": 0.82}
    assert len(mocked.calls) == 1


def test_history_missing_rates(mocked):
    mocked.get(f"{API}/history/USD/2021/05/01", json={})
    with pytest.raises(ServiceError) as exc:
        Currency(API).history("USD", "2021-05-01")
    assert exc.value == internal_server_error("currency.history", "failed to get history")


def test_convert_validation():
    svc = Currency(API)
    with pytest.raises(ServiceError) as exc:
        svc.convert("US", "EUR")
    assert exc.value == bad_request("currency.convert", "invalid from code")
    with pytest.raises(ServiceError) as exc:
        svc.convert("USD", "EU")
    assert exc.value == bad_request("currency.convert", "invalid to code")


def test_convert_with_amount(mocked):
    mocked.get(f"{API}/pair/USD/EUR/10", json={"conversion_rate": 0.5, "conversion_result": 5.0})
    result = Currency(API).convert("USD", "EUR", 10)
    assert result == ConvertResult("USD", "EUR", 0.5, 5.0)


def test_convert_rate_cached(mocked):
    mocked.get(f"{API}/pair/USD/EUR", json={"conversion_rate": 0.5})
    svc = Currency(API)
    first = svc.convert("USD", "EUR")
    second = svc.convert("USD", "EUR")
    assert first.rate == 0.5
    assert second.rate == first.rate
    assert len(mocked.calls) == 1


def test_convert_negative_amount_skips_cache(mocked):
    mocked.get(f"{API}/pair/USD/EUR", json={"conversion_rate": 0.5})
    cache = ExpiringCache()
    cache.set("pair:USDEUR", 0.1)
    result = Currency(API, cache).convert("USD", "EUR", -1)
    assert result.rate == 0.5
    assert cache.get("pair:USDEUR") == 0.5


def test_convert_bad_body(mocked):
    mocked.get(f"{API}/pair/USD/EUR", body="not json")
    with pytest.raises(ServiceError) as exc:
        Currency(API).convert("USD", "EUR")
    assert exc.value == internal_server_error("currency.convet", "failed to convert")