import asyncio

import azure.functions as func

from retail_api.app import create_app, start_storage
from retail_api.logging_config import logger, tracer
from retail_api.services.notifications import dispatch_pending_notifications

app = create_app()

function_app = func.FunctionApp()

# The Functions host does not run ASGI lifespan events, so storage is
# started on the first invocation instead.
_startup_lock = asyncio.Lock()


async def _ensure_started():
    async with _startup_lock:
        return await start_storage(app)


@function_app.route(route="{*route}", auth_level=func.AuthLevel.FUNCTION)
async def main(req: func.HttpRequest) -> func.HttpResponse:
    """Azure Functions entry-point routed through FastAPI."""
    with tracer.start_as_current_span("process_request") as span:
        span.set_attribute("http.method", req.method)
        span.set_attribute("http.url", str(req.url))
        span.set_attribute("http.route", req.route_params.get('route', ''))

        logger.info(
            f"Processing {req.method} request",
            extra={
                "method": req.method,
                "path": str(req.url),
                "route": req.route_params.get('route', '')
            }
        )

        try:
            await _ensure_started()
            response = await func.AsgiMiddleware(app).handle_async(req)
            span.set_attribute("http.status_code", response.status_code)
            return response
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))

            logger.error(
                f"Error processing request: {str(e)}",
                extra={"error_type": type(e).__name__}
            )
            return func.HttpResponse(
                body=str(e),
                status_code=500
            )


@function_app.timer_trigger(schedule="0 */5 * * * *", arg_name="timer", run_on_startup=False)
async def dispatch_outbox(timer: func.TimerRequest) -> None:
    """Retry queue notifications that could not be delivered when they were recorded."""
    with tracer.start_as_current_span("dispatch_outbox"):
        if timer.past_due:
            logger.warning("Outbox dispatch timer is running late")

        storage = await _ensure_started()
        delivered = await dispatch_pending_notifications(storage)
        logger.info(f"Outbox dispatch delivered {delivered} messages", extra={"delivered": delivered})
