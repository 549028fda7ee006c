# activation_api/routers/activate.py

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from activation_api.routers.deps import get_redemption_engine
from activation_api.services.redemption import FailureKind, RedemptionEngine, RedeemResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

ERROR_MESSAGES = {
    FailureKind.EMPTY_CODE: "activation code is required",
    FailureKind.BAD_FORMAT: "activation code format is invalid",
    FailureKind.INVALID: "activation code is invalid",
    FailureKind.ALREADY_USED: "activation code already used",
    FailureKind.INTERNAL: "internal server error",
}


def render_result(result: RedeemResult) -> JSONResponse:
    if result.ok:
        return JSONResponse(jsonable_encoder({
            "ok": True,
            "message": "activated",
            "code": result.code,
            "used_by": result.used_by,
            "used_at": result.used_at,
        }))

    error = ERROR_MESSAGES[result.kind]
    if result.kind in (FailureKind.EMPTY_CODE, FailureKind.BAD_FORMAT) and result.detail:
        error = result.detail
    body = {"ok": False, "error": error, "kind": result.kind.value}
    if result.kind == FailureKind.ALREADY_USED:
        body["used_by"] = result.used_by
        body["used_at"] = result.used_at
        return JSONResponse(jsonable_encoder(body))
    if result.kind == FailureKind.INTERNAL:
        # Opaque to callers, the details are in the log
        return JSONResponse(body, status_code=500)
    return JSONResponse(body)


@router.get("/activate")
async def activate_get(
    code: Optional[str] = None,
    user_id: Optional[str] = None,
    engine: RedemptionEngine = Depends(get_redemption_engine),
):
    logger.info("Activation request: GET code=%r", code)
    return render_result(await engine.redeem(code, user_id))


@router.options("/activate")
async def activate_options():
    # CORS preflights are answered by the middleware, plain OPTIONS lands here
    return Response(status_code=200)


@router.post("/activate")
async def activate_post(request: Request, engine: RedemptionEngine = Depends(get_redemption_engine)):
    try:
        data = await request.json()
    except ValueError:
        return JSONResponse({"ok": False, "error": "invalid JSON body"}, status_code=400)
    if not isinstance(data, dict):
        return JSONResponse({"ok": False, "error": "invalid JSON body"}, status_code=400)

    logger.info("Activation request: POST code=%r", data.get("code"))
    return render_result(await engine.redeem(data.get("code"), data.get("user_id")))
