# microsvc

A collection of small service handlers and the tooling around them:

- **`microsvc.dbquery`**: a tiny query language for JSON records
  (`a == 12 and name != "nandos"`), with `lex`, `parse` and
  `correct_field_name`, which turns dotted field names into JSON path
  expressions.
- **`microsvc.currency`**: currency codes, latest and historic exchange
  rates, and conversions against an exchange-rate HTTP API, cached in a
  small thread-safe `ExpiringCache`.
- **`microsvc.markets`**: `Crypto` (news, quotes, last prices,
  previous-close history) and `Forex` (quotes, last prices, history)
  clients for a market-data API.
- **`microsvc.geocoding`**: `Geocoding.lookup` and `Geocoding.reverse`,
  returning an `Address` and a `Location`.
- **`microsvc.answer`**: `Answer.question`, instant answers to short
  questions from an instant-answer API.
- **`microsvc.mailer`**: `Email.send`, plain-text and/or HTML e-mail
  through a SendGrid-style API.
- **`microsvc.tsgen`**: TypeScript interface generation from OpenAPI
  schemas (`schema_to_ts`), plus `snake_case`, `next_version`,
  `copy_file` and `generate_clients`.
- **`microsvc.publisher`**: building `PublicAPI` catalogue entries and
  publishing them.

Handler failures are raised as `microsvc.errors.ServiceError`, which
carries an `id`, an HTTP status `code` and a `detail`; they are created
with `bad_request`, `internal_server_error` or `not_found`.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Querying records

```python
from microsvc.dbquery import parse, correct_field_name

for query in parse('a == 12 and name != "nandos"'):
    print(query.field, query.op, query.value)

print(correct_field_name("a.b.c"))   # data ->> 'a' ->> 'b' ->> 'c'
```

Supported operators are `==`, `!=`, `<`, `<=`, `>` and `>=`. Values are
integers, `true`/`false`, or strings quoted with `"`, `'` or backticks; a
doubled quote inside a string stands for one literal quote. Strings and
booleans may only be compared with `==` and `!=`; anything else, and any
text that cannot be lexed, raises `QueryError`.

## Exchange rates

```python
from microsvc.currency import Currency, ExpiringCache

currency = Currency("https://rates.example.com/v6/placeholder", ExpiringCache(300))
print(currency.codes())
print(currency.rates("USD"))
print(currency.history("USD", "2021-06-01"))
print(currency.convert("USD", "GBP", 10))
```

Codes must be three bytes long and history dates must contain a
`YYYY-MM-DD` date; invalid input raises a bad-request `ServiceError`.
Codes are cached for an hour, history for a day, and rates and pair rates
for the cache's default lifetime.

## Market data

```python
from microsvc.markets import Crypto, Forex

crypto = Crypto("https://market.example.com/", "placeholder")
print(crypto.price("BTCUSD"))
print(crypto.news("BTC"))

forex = Forex("https://market.example.com/", "placeholder")
print(forex.quote("GBPUSD"))
```

## Geocoding, answers and e-mail

```python
from microsvc.geocoding import Geocoding
from microsvc.answer import Answer
from microsvc.mailer import Email, SendgridConfig

address, location = Geocoding(api_key="placeholder").lookup("160 Grays Inn Road", country="United Kingdom")
print(Answer().question("what is python").answer)

mailer = Email(SendgridConfig(key="placeholder", email_from="noreply@example.com"))
mailer.send("Support", "someone@example.com", "Hello", text_body="Hi there")
```

## Generating TypeScript types

```python
from microsvc.tsgen import schema_to_ts

print(schema_to_ts("QueryRequest", {
    "type": "object",
    "properties": {"id": {"type": "string"}, "limit": {"type": "number"}},
}))
```

The `microsvc-clients` command takes a directory whose subdirectories
name the services. For each one it reads the service's OpenAPI JSON file
(a file with `api` in its name ending in `.json`) from the directory of
that name under the current directory, and appends the generated
interfaces to `clients/ts/<service>/index.ts`. It then writes the
`NPM_TOKEN` environment variable into `clients/ts/.npmrc`, asks `npm` for
the published versions and replaces `1.0.1` in `clients/ts/package.json`
with the next patch version:

```
microsvc-clients path/to/services
```

A service directory containing a file named `skip` is ignored.

## Publishing APIs

```
microsvc-publish path/to/services
```

For every service directory (resolved under the current directory) this
runs `make api` and `openapi2postmanv2`, builds a `PublicAPI` entry (name,
description from `README.md`, the OpenAPI JSON, and the optional
`publicapi.json`, `examples.json`, `pricing.json` and `postman.json`) and
posts it to the catalogue, authorised with the `MICRO_ADMIN_TOKEN`
environment variable. Directories containing a `skip` file are ignored.

## What this package does not do

The handlers are plain Python classes: the package has no server or RPC
layer that exposes them over the network, and no command that starts
them. `microsvc.dbquery` only parses queries and builds field
expressions; there is no record store behind it.