from fastapi import APIRouter, Request, Response

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request):
    try:
        clickhouse = await request.app.state.reader.ping()
        redis = getattr(request.app.state, "redis", None)
        body = {"status": "ok", "clickhouse": clickhouse}
        if redis is not None:
            body["redis"] = await redis.ping()
        return body
    except Exception as e:
        return Response(status_code=503, content=str(e))


@router.get("/readyz")
async def readyz(request: Request):
    if request.app.state.ready_event.is_set():
        return {"status": "ready"}
    return Response(status_code=503, content="not ready")
