"""
Price Extraction Pipeline

Runs the extraction tiers for one product URL, cheapest first:

    JSON_BACKDOOR    Shopify product JSON (retailer flag)
    STANDARD_FETCH   plain GET + selectors (always)
    RENDERED_FETCH   headless render + selectors (retailer flag)
    UNBLOCKED_FETCH  residential-proxy render + selectors (retailer flag)
    AI_FALLBACK      model reads the page (only after a page was fetched
                     but no price was found on it)

Each tier runs inside its own circuit breaker
("price-scrape:<domain>:<tier>") wrapping the tier's retry policy. The
first tier that yields a validated price wins. Failures never escape:
callers always get a PriceExtractionResult.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple

from bs4 import BeautifulSoup

from ..common.config_loader import EngineSettings, load_engine_settings
from ..fetching import AiExtractionClient, HttpClient, RenderClient
from ..models import (
    ErrorCategory,
    ExtractionAttempt,
    PriceExtractionResult,
    RawExtractionPayload,
    RetailerConfig,
    Tier,
    utc_now,
)
from ..resilience import (
    CancellationToken,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitOpenError,
    Deadline,
    ExtractionCancelled,
    RetryPolicy,
    ScrapeError,
    category_of,
    get_default_breaker_registry,
    retry,
)
from ..storage import ResultSink
from .field_extractor import FieldExtractor
from .parsers.ai_response import SYSTEM_PROMPT, build_prompt, clean_page_text, parse_ai_response
from .parsers.shopify_json import backdoor_url, parse_product_json
from .price_parser import parse_price, validate_price
from .registry import RetailerRegistry, get_default_registry, is_http_url, normalize_hostname

logger = logging.getLogger(__name__)

HTML_TIERS = (Tier.STANDARD_FETCH, Tier.RENDERED_FETCH, Tier.UNBLOCKED_FETCH)

# Interstitial pages served with status 200 by common bot-protection vendors
BOT_CHALLENGE_MARKERS = (
    "cf-browser-verification",
    "challenge-platform",
    "<title>just a moment...</title>",
    "px-captcha",
    "/_incapsula_resource",
    "<title>access denied</title>",
)


def breaker_name(domain: str, tier: Tier) -> str:
    return f"price-scrape:{domain}:{tier.value}"


class PriceExtractionPipeline:
    """
    Tiered price extraction for product URLs.

    Usage:
        pipeline = build_pipeline()
        result = pipeline.extract_price("https://www.footlocker.com/product/~/Z1234.html")
        if result.success:
            print(result.price, result.source_tier)
    """

    def __init__(
        self,
        registry: RetailerRegistry,
        http_client: HttpClient,
        render_client: Optional[RenderClient] = None,
        ai_client: Optional[AiExtractionClient] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
        settings: Optional[EngineSettings] = None,
        sink: Optional[ResultSink] = None,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            registry: Retailer configs used to pick selectors and tiers
            http_client: Client for plain fetches and the JSON backdoor
            render_client: Render service client (rendered/unblocked tiers)
            ai_client: Chat model client (AI fallback tier)
            breakers: Breaker registry (defaults to the process-wide one)
            settings: Tier budgets, retry and breaker thresholds
            sink: Receives every successful result
            sleep: Backoff sleep override (tests pass a no-op); by default
                   backoff waits on the cancellation token
            clock: Monotonic clock for durations and deadlines
        """
        self.registry = registry
        self.http_client = http_client
        self.render_client = render_client
        self.ai_client = ai_client
        self.breakers = breakers if breakers is not None else get_default_breaker_registry()
        self.settings = settings or EngineSettings()
        self.sink = sink
        self._sleep = sleep
        self._clock = clock

        b = self.settings.breaker
        self._breaker_config = CircuitBreakerConfig(
            failure_threshold=b.failure_threshold,
            success_threshold=b.success_threshold,
            timeout=b.timeout_s,
            half_open_max_calls=b.half_open_max_calls,
        )

    # ── Public API ────────────────────────────────────────────────────────────

    def extract_price(
        self,
        url: str,
        retail_price_hint: Optional[float] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> PriceExtractionResult:
        """
        Extract the current price for a product URL.

        Args:
            url: Absolute http(s) product URL
            retail_price_hint: Known retail price; prices above twice this
                               are rejected as scraping mistakes
            cancel: Caller-owned cancellation token

        Returns:
            PriceExtractionResult (never raises for scraping failures)
        """
        if not isinstance(url, str) or not is_http_url(url):
            logger.warning("Rejected invalid URL: %r", url)
            return PriceExtractionResult.failure(str(url), "invalid URL", ErrorCategory.PARSE_ERROR)

        url = url.strip()
        cancel = cancel or CancellationToken()
        config = self.registry.lookup(url)
        domain = config.domain if config else normalize_hostname(url)
        store_name = config.name if config else domain

        tiers = self.eligible_tiers(config)
        deadline = Deadline(self._deadline_budget(tiers), clock=self._clock)
        logger.info(
            "Extracting %s (retailer=%s, tiers=%s)",
            url, store_name, ",".join(t.value for t in tiers),
        )

        attempts: List[ExtractionAttempt] = []
        fetched_html: Optional[str] = None
        last_error = "No extraction tier attempted"
        last_category = ErrorCategory.UNKNOWN

        for tier in tiers:
            if cancel.cancelled:
                return self._cancelled(url, store_name, attempts)
            if deadline.expired:
                logger.warning("Overall deadline exhausted before %s for %s", tier.value, url)
                return PriceExtractionResult.failure(
                    url, "Overall extraction deadline timed out", ErrorCategory.TIMEOUT,
                    store_name, attempts,
                )
            if tier == Tier.AI_FALLBACK and fetched_html is None:
                continue

            attempt, result, html = self._run_tier(
                tier, url, config, domain, store_name, retail_price_hint, cancel, deadline, fetched_html,
            )
            attempts.append(attempt)

            if result is not None:
                result.attempts = attempts
                logger.info(
                    "Price %.2f for %s via %s (%d tier(s))",
                    result.price, url, tier.value, len(attempts),
                )
                self._write_to_sink(result)
                return result

            if cancel.cancelled:
                return self._cancelled(url, store_name, attempts)

            last_error = attempt.error or last_error
            last_category = attempt.error_category or ErrorCategory.UNKNOWN
            # Only a page that loaded but had no recognizable price is worth showing the model
            if html and last_category == ErrorCategory.PARSE_ERROR:
                fetched_html = html

        logger.warning("All tiers failed for %s: [%s] %s", url, last_category.value, last_error)
        return PriceExtractionResult.failure(url, last_error, last_category, store_name, attempts)

    def eligible_tiers(self, config: Optional[RetailerConfig]) -> List[Tier]:
        """
        Tiers to run for a retailer, in order.

        AI_FALLBACK is listed when a model is configured; at run time it is
        skipped unless an earlier tier fetched a page without a price.
        """
        tiers = []
        if config and config.is_json_backdoor_eligible:
            tiers.append(Tier.JSON_BACKDOOR)
        tiers.append(Tier.STANDARD_FETCH)
        if config and config.requires_js_rendering and self.render_client and self.render_client.can_render:
            tiers.append(Tier.RENDERED_FETCH)
        if config and config.requires_anti_bot_bypass and self.render_client and self.render_client.can_unblock:
            tiers.append(Tier.UNBLOCKED_FETCH)
        if self.ai_client is not None:
            tiers.append(Tier.AI_FALLBACK)
        return tiers

    def retry_policy(self, tier: Tier) -> RetryPolicy:
        s = self.settings.tier(tier.value)
        return RetryPolicy(
            max_attempts=s.max_attempts,
            base_delay_ms=s.base_delay_ms,
            jitter_ratio=s.jitter_ratio,
            max_delay_ms=s.max_delay_ms,
            retryable_categories=frozenset(ErrorCategory(c) for c in s.retryable),
        )

    # ── Tier execution ───────────────────────────────────────────────────────

    def _run_tier(
        self,
        tier: Tier,
        url: str,
        config: Optional[RetailerConfig],
        domain: str,
        store_name: str,
        hint: Optional[float],
        cancel: CancellationToken,
        deadline: Deadline,
        fetched_html: Optional[str],
    ) -> Tuple[ExtractionAttempt, Optional[PriceExtractionResult], Optional[str]]:
        """Run one tier under breaker + retry. Returns (attempt, result or None, fetched HTML)."""
        attempt = ExtractionAttempt(tier=tier, started_at=utc_now())
        started = self._clock()
        timeout_s = self.settings.tier(tier.value).timeout_s
        calls = 0
        last_payload: Optional[RawExtractionPayload] = None

        def operation() -> PriceExtractionResult:
            nonlocal calls, last_payload
            calls += 1
            timeout = deadline.clamp(timeout_s)
            if timeout <= 0:
                raise ScrapeError("Overall extraction deadline timed out", category=ErrorCategory.TIMEOUT)
            payload = self._fetch_payload(tier, url, config, hint, timeout, cancel, fetched_html)
            last_payload = payload
            return self._validate(payload, url, store_name, hint)

        breaker = self.breakers.get(breaker_name(domain, tier), self._breaker_config)
        result = None
        html = None
        try:
            result = breaker.call(
                retry, operation, self.retry_policy(tier),
                operation_name=f"{tier.value} {url}", cancel=cancel, sleep=self._sleep,
            )
        except CircuitOpenError as e:
            attempt.circuit_open = True
            attempt.error = str(e)
            attempt.error_category = e.last_category or ErrorCategory.UNKNOWN
            logger.warning("Skipped %s for %s: %s", tier.value, url, e)
        except ExtractionCancelled:
            attempt.error = "cancelled"
            attempt.error_category = ErrorCategory.TIMEOUT
            logger.info("Extraction of %s cancelled during %s", url, tier.value)
        except ScrapeError as e:
            attempt.error = str(e)
            attempt.error_category = e.category
            html = e.html
            logger.info("%s failed for %s: [%s] %s", tier.value, url, e.category.value, e)
        except Exception as e:
            attempt.error = f"{type(e).__name__}: {str(e)[:200]}"
            attempt.error_category = category_of(e)
            logger.warning("%s raised unexpected %s for %s", tier.value, attempt.error, url)

        attempt.duration_ms = int((self._clock() - started) * 1000)
        attempt.attempts = calls
        if last_payload is not None:
            attempt.raw_price_text = last_payload.sale_price_text or last_payload.price_text or None
            attempt.parsed_price = parse_price(attempt.raw_price_text)
        if result is not None:
            attempt.success = True
            attempt.parsed_price = result.price
        return attempt, result, html

    def _fetch_payload(
        self,
        tier: Tier,
        url: str,
        config: Optional[RetailerConfig],
        hint: Optional[float],
        timeout: float,
        cancel: CancellationToken,
        fetched_html: Optional[str],
    ) -> RawExtractionPayload:
        user_agent = config.user_agent if config else None

        if tier == Tier.JSON_BACKDOOR:
            data = self.http_client.get_json(backdoor_url(url), timeout, user_agent=user_agent, cancel=cancel)
            return parse_product_json(data)

        if tier == Tier.AI_FALLBACK:
            page_text = clean_page_text(fetched_html or "", self.settings.ai_max_chars)
            logger.info("AI extraction for %s (%d chars)", url, len(page_text))
            reply = self.ai_client.complete(SYSTEM_PROMPT, build_prompt(url, page_text), timeout)
            cancel.raise_if_cancelled()
            return parse_ai_response(reply)

        if tier == Tier.STANDARD_FETCH:
            html = self.http_client.get_text(url, timeout, user_agent=user_agent, cancel=cancel)
        elif tier == Tier.RENDERED_FETCH:
            html = self.render_client.render(url, timeout, cancel=cancel)
        elif tier == Tier.UNBLOCKED_FETCH:
            html = self.render_client.unblock(url, timeout, cancel=cancel)
        else:
            raise ValueError(f"Unsupported tier: {tier}")

        cancel.raise_if_cancelled()
        document = BeautifulSoup(html, "lxml")
        payload = FieldExtractor(config).extract(
            document, tier, html, accept=lambda value: validate_price(value, hint),
        )
        if not payload.price_text and _looks_like_bot_challenge(html):
            raise ScrapeError(
                "Bot challenge page returned instead of product page",
                category=ErrorCategory.BOT_DETECTION,
            )
        return payload

    def _validate(
        self,
        payload: RawExtractionPayload,
        url: str,
        store_name: str,
        hint: Optional[float],
    ) -> PriceExtractionResult:
        """Turn a tier's raw payload into a validated result, or raise a classified ScrapeError."""
        regular = parse_price(payload.price_text)
        sale = parse_price(payload.sale_price_text)
        original = parse_price(payload.original_price_text)

        price = regular
        if sale is not None and validate_price(sale, hint):
            price = sale
            if regular is not None and regular > sale:
                original = regular

        if price is None:
            raise ScrapeError(
                f"Price not found on page ({payload.source.value})",
                category=ErrorCategory.PARSE_ERROR,
                html=payload.html,
            )
        if not validate_price(price, hint):
            raise ScrapeError(
                f"Price validation failed: {price:.2f} from {payload.price_text!r}",
                category=ErrorCategory.INVALID_PRICE,
            )
        if original is not None and (original <= price or not validate_price(original)):
            original = None

        return PriceExtractionResult(
            url=url,
            success=True,
            price=price,
            original_price=original,
            in_stock=True if payload.in_stock is None else payload.in_stock,
            store_name=store_name,
            source_tier=payload.source,
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _deadline_budget(self, tiers: List[Tier]) -> float:
        if self.settings.overall_deadline_s:
            return float(self.settings.overall_deadline_s)
        total = 0.0
        for tier in tiers:
            s = self.settings.tier(tier.value)
            total += s.timeout_s * s.max_attempts
        return total

    def _cancelled(self, url: str, store_name: str, attempts: List[ExtractionAttempt]) -> PriceExtractionResult:
        return PriceExtractionResult.failure(url, "cancelled", ErrorCategory.TIMEOUT, store_name, attempts)

    def _write_to_sink(self, result: PriceExtractionResult) -> None:
        if self.sink is None:
            return
        try:
            self.sink.write(result, utc_now())
        except Exception as e:
            logger.error("Result sink failed for %s: %s: %s", result.url, type(e).__name__, e)


def _looks_like_bot_challenge(html: str) -> bool:
    head = html[:20000].lower()
    return any(marker in head for marker in BOT_CHALLENGE_MARKERS)


def build_pipeline(
    settings: Optional[EngineSettings] = None,
    registry: Optional[RetailerRegistry] = None,
    sink: Optional[ResultSink] = None,
) -> PriceExtractionPipeline:
    """
    Assemble a pipeline from settings, creating only the clients that are configured.

    The render client exists when RENDER_SERVICE_URL or UNBLOCK_SERVICE_URL is
    set; the AI client exists when OPENAI_API_KEY is set.
    """
    settings = settings or load_engine_settings()
    registry = registry if registry is not None else get_default_registry()

    render_client = None
    if settings.render_service_url or settings.unblock_service_url:
        render_client = RenderClient(
            render_url=settings.render_service_url,
            unblock_url=settings.unblock_service_url,
            token=settings.render_service_token,
            wait_ms=settings.render_wait_ms,
        )

    ai_client = None
    if settings.openai_api_key:
        ai_client = AiExtractionClient(
            api_key=settings.openai_api_key,
            model=settings.ai_model,
            base_url=settings.openai_base_url or None,
        )

    logger.debug(
        "Pipeline clients: render=%s, unblock=%s, ai=%s",
        bool(settings.render_service_url), bool(settings.unblock_service_url), ai_client is not None,
    )
    return PriceExtractionPipeline(
        registry=registry,
        http_client=HttpClient(),
        render_client=render_client,
        ai_client=ai_client,
        settings=settings,
        sink=sink,
    )
