from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, UploadFile, status
from fastapi.responses import Response

from retail_api.dependencies import get_storage_service
from retail_api.exceptions import NotFoundError, StorageError
from retail_api.logging_config import get_child_logger, tracer
from retail_api.models.upload import FileUploadResult
from retail_api.storage import StorageService

logger = get_child_logger("routes.upload")

router = APIRouter(prefix="/uploads", tags=["uploads"])


def content_disposition(file_name: str) -> str:
    """
    Attachment header for a stored file name. Names outside ASCII get an
    RFC 6266 ``filename*`` parameter next to an ASCII fallback.
    """
    fallback = file_name.encode("ascii", "replace").decode("ascii").replace('"', "_")
    header = f'attachment; filename="{fallback}"'
    if fallback != file_name:
        header += f"; filename*=UTF-8''{quote(file_name)}"
    return header


@router.post("/", response_model=FileUploadResult, status_code=status.HTTP_201_CREATED)
async def upload_proof_of_payment(
    proof_of_payment: UploadFile = File(..., description="Proof of payment"),
    order_id: Optional[str] = Form(None),
    customer_name: Optional[str] = Form(None),
    storage: StorageService = Depends(get_storage_service),
):
    """
    Store a proof of payment in the payment-proofs container and keep a copy
    in the contracts file share.
    """
    settings = storage.settings
    with tracer.start_as_current_span("api_upload_proof_of_payment") as span:
        try:
            data = await proof_of_payment.read()
        finally:
            await proof_of_payment.close()

        if not data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please select a file to upload.",
            )

        file_name = proof_of_payment.filename or "proof-of-payment"
        span.set_attribute("file.name", file_name)
        span.set_attribute("file.size", len(data))

        try:
            blob_url = await storage.upload_file(
                data,
                file_name,
                settings.payment_proofs_container,
                content_type=proof_of_payment.content_type,
            )
            share_file_name = await storage.upload_to_file_share(
                data,
                file_name,
                settings.contracts_share,
                settings.payments_directory,
            )
        except StorageError as e:
            span.set_attribute("error", True)
            logger.error(f"Upload failed: {e}", exc_info=e.original_exception)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"An error occurred while uploading the file: {e}",
            )

        logger.info(
            "Proof of payment uploaded",
            extra={"order_id": order_id, "blob_url": blob_url, "share_file": share_file_name},
        )
        return FileUploadResult(
            message=f"File uploaded successfully! File name: {blob_url}",
            blob_url=blob_url,
            share_file_name=share_file_name,
            order_id=order_id,
            customer_name=customer_name,
        )


@router.get("/{file_name}")
async def download_proof_of_payment(
    file_name: str = Path(..., title="Stored file name returned by the upload"),
    storage: StorageService = Depends(get_storage_service),
):
    settings = storage.settings
    try:
        content = await storage.download_from_file_share(
            settings.contracts_share, file_name, settings.payments_directory
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return Response(
        content=content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": content_disposition(file_name)},
    )
