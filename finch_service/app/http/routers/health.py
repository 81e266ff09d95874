import asyncio

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    return {"ok": True}


@router.get("/readyz")
async def readyz(request: Request):
    """
    Store: can read preferences for a probe user.
    Provider: answers its liveness probe within a second.
    """
    agent = request.app.state.chat_svc.agent
    try:
        await agent.store.get_preferences("_readiness")
    except Exception as e:
        return {"ready": False, "store": False, "provider": None, "error": str(e)}

    try:
        ok = await asyncio.wait_for(agent.provider.ping(), timeout=1.0)
    except Exception as e:
        return {"ready": False, "store": True, "provider": False, "error": str(e)}
    return {"ready": bool(ok), "store": True, "provider": bool(ok)}
