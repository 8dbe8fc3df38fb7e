from datetime import datetime
from typing import Optional

import requests
from cachetools import TTLCache, cached
from cachetools.keys import hashkey
from loguru import logger
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from booking_core.config.settings import Settings
from booking_core.core.circuit_breaker import CircuitBreakerConfig
from booking_core.core.exceptions import PaymentFailedException, PricingFailedException
from booking_core.monitoring.metrics import MetricsCollector
from booking_core.schemas import PricingBreakdown


class PaymentResult:
    def __init__(self, status: str, message: Optional[str] = None):
        self.status = status
        self.message = message

    @property
    def success(self) -> bool:
        return self.status == "success"


class ExternalClient:
    """Pricing RPC and payment gateway, both behind circuit breakers."""

    def __init__(self, settings: Settings):
        self._session = self._build_session()
        self._timeout = settings.http_timeout_sec
        self._external_base = settings.external_base
        self._quote_cache = TTLCache(maxsize=1024, ttl=settings.pricing_preview_ttl_sec)

        self._cb_config = CircuitBreakerConfig(settings)
        self._pricing_breaker = self._cb_config.get_pricing_breaker()
        self._payment_breaker = self._cb_config.get_payment_breaker()

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        retries = Retry(
            total=3,
            connect=3,
            read=3,
            backoff_factor=0.3,
            status_forcelist=(502, 503, 504),
            allowed_methods=frozenset({"GET", "POST"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"User-Agent": "booking-core/1.0"})
        return session

    def _url(self, path: str) -> str:
        return f"{self._external_base.rstrip('/')}/{path.lstrip('/')}"

    def _post(self, path: str, payload: dict) -> dict:
        response = self._session.post(
            self._url(path), json=payload, timeout=self._timeout
        )
        response.raise_for_status()
        return response.json() if response.content else {}

    def calculate_rental_pricing(
        self,
        power_bank_type_id: str,
        rental_duration_hours: int,
        rental_type: str,
        scheduled_start_time: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> PricingBreakdown:
        payload = {
            "p_power_bank_type_id": power_bank_type_id,
            "p_rental_duration_hours": rental_duration_hours,
            "p_rental_type": rental_type,
            "p_scheduled_start_time": (
                scheduled_start_time.isoformat() if scheduled_start_time else None
            ),
            "p_user_id": user_id,
        }

        @self._pricing_breaker
        def _calculate():
            return self._post("/rpc/calculate_rental_pricing", payload)

        try:
            data = _calculate()
        except Exception as e:
            MetricsCollector.record_external_call("pricing", False)
            logger.warning(f"Pricing RPC failed for type {power_bank_type_id}: {e}")
            raise PricingFailedException(f"Failed to calculate pricing: {e}") from e

        if not isinstance(data, dict) or data.get("error"):
            MetricsCollector.record_external_call("pricing", False)
            error = data.get("error") if isinstance(data, dict) else "malformed response"
            logger.warning(f"Pricing RPC returned error for type {power_bank_type_id}: {error}")
            raise PricingFailedException(str(error))

        MetricsCollector.record_external_call("pricing", True)
        return PricingBreakdown(**data)

    def preview_rental_pricing(
        self,
        power_bank_type_id: str,
        rental_duration_hours: int,
        rental_type: str,
        scheduled_start_time: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> PricingBreakdown:
        """Quote shown before booking; identical requests share a short-lived cache."""

        @cached(cache=self._quote_cache, key=hashkey)
        def _preview_cached(*args) -> PricingBreakdown:
            return self.calculate_rental_pricing(*args)

        return _preview_cached(
            power_bank_type_id,
            rental_duration_hours,
            rental_type,
            scheduled_start_time,
            user_id,
        )

    def invoke_payment(
        self, amount_minor_units: int, phone: str, reference: str, description: str
    ) -> PaymentResult:
        @self._payment_breaker
        def _invoke():
            return self._post(
                "/functions/opay-payment",
                {
                    "amount": amount_minor_units,
                    "phone": phone,
                    "reference": reference,
                    "description": description,
                },
            )

        try:
            data = _invoke()
        except Exception as e:
            MetricsCollector.record_external_call("payment", False)
            logger.warning(f"Payment {reference} for {amount_minor_units} failed: {e}")
            raise PaymentFailedException(f"Payment failed: {e}") from e

        result = PaymentResult(status=data.get("status", "failed"), message=data.get("message"))
        MetricsCollector.record_external_call("payment", result.success)
        logger.debug(f"Payment {reference} finished with status {result.status}")
        return result

    def get_circuit_breaker_stats(self):
        return self._cb_config.get_breaker_stats()
