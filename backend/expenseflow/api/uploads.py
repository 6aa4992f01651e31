"""Supporting document uploads: receipts, invoices and payment proofs."""
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile, status

from expenseflow.core.deps import get_current_user, require_role
from expenseflow.models.user import User
from expenseflow.schemas.expense import UploadOut
from expenseflow.services import storage as storage_svc

router = APIRouter()


async def _store(kind: str, file: UploadFile) -> UploadOut:
    content = await file.read()
    return UploadOut(url=storage_svc.store_document(kind, content, file.content_type))


@router.post("/receipt", response_model=UploadOut, status_code=status.HTTP_201_CREATED)
async def upload_receipt(
    file: Annotated[UploadFile, File(description="JPEG, PNG, WebP or PDF")],
    _user: Annotated[User, Depends(get_current_user)],
):
    return await _store("receipt", file)


@router.post("/invoice", response_model=UploadOut, status_code=status.HTTP_201_CREATED)
async def upload_invoice(
    file: Annotated[UploadFile, File(description="JPEG, PNG, WebP or PDF")],
    _user: Annotated[User, Depends(require_role("FINANCE", "ADMIN"))],
):
    return await _store("invoice", file)


@router.post("/payment-proof", response_model=UploadOut, status_code=status.HTTP_201_CREATED)
async def upload_payment_proof(
    file: Annotated[UploadFile, File(description="JPEG, PNG, WebP or PDF")],
    _user: Annotated[User, Depends(require_role("FINANCE"))],
):
    return await _store("payment-proof", file)
