# httpscaler

`httpscaler` works out how far an HTTP workload should scale from the number of
requests waiting on it. It polls the pending-request counts kept by a fleet of
interceptors, adds them up per host, and answers the questions an external
autoscaler asks. Is this workload active? What is its target? What is its
current metric value?

The package uses only the standard library.

## Modules

- `httpscaler.config`: reads the settings from environment variables.
- `httpscaler.naming`: builds metric names and count keys.
- `httpscaler.queue_pinger`: fetches and aggregates interceptor counts.
- `httpscaler.handlers`: answers the autoscaler's requests.

## Configuration

`parse_config(environ=None)` builds a frozen `ScalerConfig` dataclass. It reads from
`environ`, or from `os.environ` when no mapping is given. It raises `ConfigError`,
a subclass of `ValueError`, when a required variable is missing or a value cannot
be parsed.

| Variable | Field | Default |
| --- | --- | --- |
| `KEDA_HTTP_SCALER_PORT` | `grpc_port` | `8080` |
| `KEDA_HTTP_HEALTH_PORT` | `health_port` | `8090` |
| `KEDA_HTTP_SCALER_TARGET_ADMIN_NAMESPACE` | `target_namespace` | required |
| `KEDA_HTTP_SCALER_TARGET_ADMIN_SERVICE` | `target_service` | required |
| `KEDA_HTTP_SCALER_TARGET_ADMIN_DEPLOYMENT` | `target_deployment` | required |
| `KEDA_HTTP_SCALER_TARGET_ADMIN_PORT` | `target_port` | required |
| `KEDA_HTTP_SCALER_TARGET_PENDING_REQUESTS` | `target_pending_requests` | `100` |
| `KEDA_HTTP_SCALER_CONFIG_MAP_INFORMER_RSYNC_PERIOD` | `config_map_cache_rsync_period` | `60m` |
| `KEDA_HTTP_SCALER_DEPLOYMENT_INFORMER_RSYNC_PERIOD` | `deployment_cache_rsync_period` | `60m` |
| `KEDA_HTTP_QUEUE_TICK_DURATION` | `queue_tick_duration` | `500ms` |

Integer values follow these rules:

- Decimal, `0x`, `0o` and `0b` forms are accepted.
- A leading `0` marks an octal number.
- Each value must fit in a signed 64-bit integer.

Durations use forms such as `1h30m`, `500ms` or `-1.5s`. The units are `ns`, `us`
(also `µs`), `ms`, `s`, `m` and `h`. `parse_duration(text)` turns a duration into
a `datetime.timedelta` and truncates it to whole microseconds.

```python
from httpscaler.config import parse_config

config = parse_config({
    "KEDA_HTTP_SCALER_TARGET_ADMIN_NAMESPACE": "keda",
    "KEDA_HTTP_SCALER_TARGET_ADMIN_SERVICE": "interceptor-admin",
    "KEDA_HTTP_SCALER_TARGET_ADMIN_DEPLOYMENT": "interceptor",
    "KEDA_HTTP_SCALER_TARGET_ADMIN_PORT": "9090",
})
config.queue_tick_duration  # timedelta(milliseconds=500)
```

## Metric names

- `namespaced_key(namespace, name)` returns `"namespace/name"`. Counts are stored
  under this key.
- `metric_name(namespace, name)` returns the escaped form of `"http-namespace/name"`.
- `escape_string(text)` replaces every character outside `-`, `.`, digits and ASCII
  letters. Each such character becomes `_` followed by its UTF-8 bytes in upper-case
  hex, padded to at least four digits. For example, `/` becomes `_002F`.

## Polling interceptors

`QueuePinger(get_endpoints, get_counts, namespace, service_name, deployment_name, admin_port)`
needs two callables that you supply:

- `get_endpoints(namespace, service_name)` returns the addresses of the service's
  endpoints.
- `get_counts(base_url)` returns the pending count per host that one interceptor
  reports. It receives `http://<address>:<admin_port>`. IPv6 addresses are put in
  brackets.

Counts from all endpoints are fetched concurrently and summed per host. If any
fetch fails, `PingError` is raised.

```python
import queue
import threading
from httpscaler.queue_pinger import QueuePinger

def get_endpoints(namespace, service_name):
    return ["10.0.0.1", "10.0.0.2"]

def get_counts(base_url):
    return {"default/my-app": 3}

pinger = QueuePinger(get_endpoints, get_counts, "keda", "interceptor-admin",
                     "interceptor", "9090")
pinger.counts()           # {"default/my-app": 6}
pinger.aggregate_count    # 6
pinger.last_ping_time     # datetime of the last successful fetch

stop = threading.Event()
events = queue.Queue()
threading.Thread(target=pinger.start, args=(0.5, stop, events), daemon=True).start()
```

The pinger behaves as follows:

- **Construction.** The constructor performs the first fetch and raises `PingError`
  if it fails.
- **Refreshing.** `fetch_and_save_counts()` fetches again and stores the result.
- **Snapshots.** `counts()` returns a copy of the stored per-host counts.

`start(interval, stop_event, deployment_events=None)` refreshes the counts every
`interval` until `stop_event` is set:

- `interval` may be a `timedelta` or a number of seconds. A non-positive interval
  raises `ValueError`.
- A failed scheduled refresh raises `PingError` and ends the loop.
- Each item put on `deployment_events` triggers an extra refresh. A failure of that
  refresh is only logged.

`fetch_counts(get_endpoints, get_counts, namespace, service_name, admin_port)` does
a single fetch without keeping any state. It returns `(per_host_counts, aggregate)`.

## Answering the autoscaler

`ScalerHandler(pinger, lookup_target, default_target_metric)` takes the following
arguments:

- `pinger`: any object with a `counts()` method, such as a `QueuePinger`.
- `lookup_target(namespace, name)`: returns the target pending requests of a scaled
  object, or `None` when none is set. The handler then uses 100. It should raise
  when the object does not exist, and `ScaledObjectNotFound` is provided for that
  purpose.
- `default_target_metric`: stored on the handler as `target_metric`.

```python
from httpscaler.handlers import ScalerHandler, ScaledObjectRef

def lookup_target(namespace, name):
    return 50

handler = ScalerHandler(pinger, lookup_target, default_target_metric=100)
ref = ScaledObjectRef(namespace="default", name="my-app")

handler.is_active(ref)        # True when the count for default/my-app is above 0
handler.get_metric_spec(ref)  # [MetricSpec(metric_name="http-default_002Fmy-app", target_size=50)]
handler.get_metrics(ref)      # [MetricValue(metric_name="http-default_002Fmy-app", metric_value=6)]
handler.ping()                # always succeeds
```

A `ScaledObjectRef` whose `scaler_metadata` contains `interceptorTargetPendingRequests`
is treated as the interceptor fleet itself:

- **Lookup fails.** `get_metric_spec` takes the target from that metadata value. The
  value must be a decimal 64-bit integer; otherwise `ScalerError` is raised.
- **Own count is zero.** `get_metrics` reports the sum of the counts of every host.

In every other case, `get_metric_spec` re-raises the exception that the lookup raised.

`stream_is_active(ref, stop_event, interval=timedelta(milliseconds=5))` is a
generator. It yields `is_active(ref)` once per interval until `stop_event` is set.

## What this package does not do

The package has no command and no network server. It does not:

- serve the autoscaler's gRPC interface;
- read Kubernetes objects or watch deployments;
- make HTTP requests itself.

Endpoint discovery, count fetching and scaled-object lookups are the callables you
pass in. To expose the handler's methods to an autoscaler, wire them into a server of
your own.

## Running the tests

```
pip install -e .[test]
pytest
```