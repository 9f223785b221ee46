# ordersvc

A small order lookup service. Orders are written to an SQLite database and
served back over HTTP as JSON or as an HTML page. Reads go through an
in-memory LRU cache with a time-to-live, which is warmed on start-up with the
most recent orders.

## Running

    ordersvc

The command expects a `.env` file in the working directory; without one it
prints `No .env file found` and exits with status 1. The file is loaded into
the environment, the configuration is read from it, the database tables are
created if needed, the cache is preloaded and the HTTP server starts on
`0.0.0.0:<HTTP_PORT>`. The service stops on SIGINT or SIGTERM, or when the HTTP
server fails.

## Configuration

| Variable              | Required | Default | Meaning                                        |
|-----------------------|----------|---------|------------------------------------------------|
| `HTTP_PORT`           | yes      |         | Port the HTTP server listens on                |
| `LOG_LEVEL`           | yes      |         | `debug`, `info`, `warn` or `error`             |
| `PG_URL`              | yes      |         | Database location (see below)                  |
| `PG_POOL_MAX`         | yes      |         | Largest number of open database connections    |
| `KAFKA_TOPIC`         | yes      |         | Read and checked, not otherwise used           |
| `CACHE_CAPACITY`      | yes      |         | Number of orders the cache holds               |
| `CACHE_TTL`           | yes      |         | Minutes an order stays in the cache            |
| `CACHE_PRELOAD_LIMIT` | yes      |         | Recent orders loaded into the cache on start   |
| `SWAGGER_ENABLED`     | no       | false   | Serve the API description                      |
| `METRICS_ENABLED`     | no       | true    | Serve request metrics                          |

Integers must be plain decimal numbers. Booleans accept `1`, `t`, `T`,
`true`, `True`, `TRUE` and `0`, `f`, `F`, `false`, `False`, `FALSE`; an empty
value means the default. Every missing or malformed value is collected into a
single `ordersvc.config.ConfigError`, and the command then exits with status 1.

`PG_URL` may be a file path, `sqlite:///<path>`, or one of `:memory:`,
`sqlite://`, `sqlite:///:memory:` for a private in-memory database. Other
`scheme://` URLs are rejected.

## HTTP API

`GET /v1/order/info?order_uid=<uid>` returns the order as JSON.

- 200 with the order
- 400 `{"error": "order_uid required"}` when `order_uid` is missing
- 404 `{"error": "record not found"}` when no such order exists
- 500 with an error message on storage problems

`GET /v1/order/info/html` renders `docs/html/order_form.html`; with
`?order_uid=<uid>` it renders `docs/html/order_info.html` with the variables
`Order` and `PrettyJSON` (the order as indented JSON). Both templates are read
from the working directory at request time and are not shipped with the
package; if one cannot be read or rendered the response is a 500 carrying the
error text. Unknown orders give 404 as above.

When metrics are enabled, `GET /metrics` returns request counts and total
durations per status, method and route in the Prometheus text format. When
the API description is enabled, `GET /swagger/doc.json` returns it.

## Order format

An order is a JSON object with `order_uid`, `track_number`, `entry`,
`delivery`, `payment`, `items`, `locale`, `internal_signature`,
`customer_id`, `delivery_service`, `shardkey`, `sm_id`, `date_created`
(RFC 3339) and `oof_shard`. Missing or `null` fields keep their zero values;
values of the wrong type raise `ValueError`. `ordersvc.entity` has
`order_to_dict`, `order_from_dict`, `order_to_json` and `order_from_json`.

When an order is stored its `date_created` is set to the current UTC time.

## Logging

`ordersvc.logger.Logger` writes one JSON object per line to standard output,
with `level`, `time`, `caller` and `message`. Every record is written with
level `info`. With `LOG_LEVEL` set to `debug` or `info` all records are
written; with `warn` or `error` none are. `Logger.fatal` logs and exits with
status 1.

## Using it as a library

- `ordersvc.config.load_config(environ)` builds a `Config` from a mapping of
  environment variables (the process environment when omitted).
- `ordersvc.database.Database` is a pool of SQLite connections with
  `transaction()`, `create_schema()` and `close()`; opening is retried
  `conn_attempts` times, `conn_timeout` seconds apart.
- `ordersvc.persistent.OrdersRepository` has `store`, `get_order` and
  `list_recent_orders`; the last two raise
  `ordersvc.errors.RecordNotFoundError` when nothing is found.
- `ordersvc.cache.CachedOrdersRepository` puts an `ordersvc.lru.LRUCache` in
  front of the repository and has `preload_cache(limit)`. Setting a key that
  is already cached only marks it as recently used; the value is not replaced.
- `ordersvc.usecase.OrdersUseCase.order(order_uid)` looks an order up.
- `ordersvc.http_api.create_app(config, use_case, logger)` builds the Flask
  application; `order_routes` and `error_response` are the pieces it uses.
- `ordersvc.httpserver.HTTPServer` runs a WSGI application in a background
  thread with `start()`, `wait_error(timeout)` and `shutdown()`.
- `ordersvc.consumer.OrdersConsumer` reads JSON order messages from a
  `MessageSource`, such as `QueueMessageSource`, and stores them; messages
  that cannot be read, decoded or stored are logged and skipped.

## What it does not do

The service does not connect to a message broker. The consumer started by the
`ordersvc` command reads from an in-process `QueueMessageSource` that nothing
outside the process feeds, so a running service only serves orders that are
already in its database; new orders have to be written through the library
(`OrdersRepository.store` or `QueueMessageSource.put` in the same process).
The only storage is SQLite. The HTML templates are not included.