from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from tourillo.services.email_dispatch import send_dynamic_email
from tourillo.utils.logger import logger

router = APIRouter(prefix="/api", tags=["email"])


class SendEmailRequest(BaseModel):
    form_type: Literal["contact", "quote", "booking", "custom"] = Field(alias="formType")
    data: Dict[str, Any]
    custom_subject: Optional[str] = Field(default=None, alias="customSubject")


@router.post("/send-email")
async def send_email(body: SendEmailRequest):
    result = await send_dynamic_email(body.form_type, body.data, body.custom_subject)
    if result.success:
        return {"success": True, "messageId": result.message_id}
    logger.error(f"{body.form_type} email failed: {result.error}")
    status_code = 400 if result.error == "No data provided" else 500
    return JSONResponse({"success": False, "error": result.error}, status_code=status_code)
