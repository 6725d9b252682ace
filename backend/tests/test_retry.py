import unittest

from product_studio.core.errors import MalformedImageError, ProviderError, RateLimitError
from product_studio.core.retry import call_with_retry, parse_retry_after, raise_for_provider_status
from product_studio.core.settings import RetrySettings


class Script:
    """Callable that raises the queued exceptions in order, then returns ``value``."""

    def __init__(self, *failures, value="ok"):
        self.failures = list(failures)
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.value


class TestCallWithRetry(unittest.TestCase):
    def setUp(self):
        self.sleeps = []

    def _call(self, fn, **settings):
        return call_with_retry(fn, settings=RetrySettings(**settings), sleep=self.sleeps.append)

    def test_rate_limit_waits_retry_after_plus_buffer(self):
        fn = Script(RateLimitError("429", retry_after=6))
        self.assertEqual(self._call(fn), "ok")
        self.assertEqual(len(self.sleeps), 1)
        self.assertGreaterEqual(self.sleeps[0], 7.0)

    def test_rate_limit_does_not_consume_generic_budget(self):
        fn = Script(
            RateLimitError("429", retry_after=6),
            ProviderError("boom"),
            ProviderError("boom"),
            ProviderError("boom"),
        )
        self.assertEqual(self._call(fn, max_retries=3), "ok")
        self.assertEqual(self.sleeps, [7.0, 1.0, 2.0, 4.0])
        self.assertEqual(fn.calls, 5)

    def test_generic_failures_back_off_exponentially_then_raise(self):
        fn = Script(*[ProviderError(f"boom {i}") for i in range(4)])
        with self.assertRaises(ProviderError):
            self._call(fn, max_retries=3, base_delay=0.5)
        self.assertEqual(self.sleeps, [0.5, 1.0, 2.0])
        self.assertEqual(fn.calls, 4)

    def test_client_errors_are_not_retried(self):
        fn = Script(ProviderError("bad request", status_code=400))
        with self.assertRaises(ProviderError):
            self._call(fn)
        self.assertEqual(self.sleeps, [])

    def test_malformed_payloads_are_not_retried(self):
        fn = Script(MalformedImageError("product", "HTML error page"))
        with self.assertRaises(MalformedImageError):
            self._call(fn)
        self.assertEqual(fn.calls, 1)

    def test_server_errors_are_retried(self):
        fn = Script(ProviderError("unavailable", status_code=503))
        self.assertEqual(self._call(fn), "ok")
        self.assertEqual(self.sleeps, [1.0])

    def test_rate_limit_waits_are_capped(self):
        fn = Script(*[RateLimitError("429", retry_after=1) for _ in range(10)])
        with self.assertRaises(RateLimitError):
            self._call(fn, max_rate_limit_waits=2)
        self.assertEqual(self.sleeps, [2.0, 2.0])


class TestRetryAfterParsing(unittest.TestCase):
    def test_from_dict(self):
        self.assertEqual(parse_retry_after({"detail": "slow down", "retry_after": 6}), 6.0)
        self.assertEqual(parse_retry_after({"error": {"retry_after": "3"}}), 3.0)

    def test_from_text_and_bytes(self):
        self.assertEqual(parse_retry_after('{"detail":"Request was throttled","retry_after": 12}'), 12.0)
        self.assertEqual(parse_retry_after(b'{"retry_after":2.5}'), 2.5)

    def test_default_when_missing(self):
        self.assertEqual(parse_retry_after("Too Many Requests"), 10.0)
        self.assertEqual(parse_retry_after(None, default=4.0), 4.0)

    def test_status_mapping(self):
        with self.assertRaises(RateLimitError) as ctx:
            raise_for_provider_status(429, '{"retry_after": 6}', provider="upscale")
        self.assertEqual(ctx.exception.retry_after, 6.0)

        with self.assertRaises(ProviderError) as ctx:
            raise_for_provider_status(500, "oops", provider="matting")
        self.assertEqual(ctx.exception.status_code, 500)

        raise_for_provider_status(200, "", provider="matting")


if __name__ == "__main__":
    unittest.main()
