"""Health check endpoint handler."""

import logging

from chatcore.core.answer_generator import AnswerGenerator

from ..models.health import HealthStatus, ServiceStatus

logger = logging.getLogger(__name__)


async def check_health(generator: AnswerGenerator | None) -> HealthStatus:
    """Check health of the reply pipeline.

    Args:
        generator: Answer generator, None if startup failed

    Returns:
        HealthStatus with service statuses and cache statistics
    """
    if generator is None:
        return HealthStatus(
            status="unhealthy",
            services={
                "generator": ServiceStatus(
                    name="answer_generator",
                    status="unhealthy",
                    message="Answer generator not initialized",
                )
            },
        )

    services = {
        "generator": ServiceStatus(
            name="answer_generator",
            status="healthy",
            message=f"Model: {generator.connector.model_name or 'unknown'}",
        )
    }

    if generator.market_data is None:
        services["market_data"] = ServiceStatus(
            name="market_data", status="unknown", message="Market data disabled"
        )
    else:
        limiter = generator.market_data.rate_limiter
        message = f"Provider: {generator.market_data.base_url}"
        if limiter is not None:
            message += f" ({limiter.get_stats()['available_tokens']} calls available)"
        services["market_data"] = ServiceStatus(name="market_data", status="healthy", message=message)

    statuses = [s.status for s in services.values()]
    overall_status = "healthy" if "unhealthy" not in statuses else "degraded"

    return HealthStatus(status=overall_status, services=services, caches=generator.cache.stats())
