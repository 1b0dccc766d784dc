"""
Notice Engine - Letters API Router

Prepares expiry-notice letters from a record selection, persists them as a
batch, and exposes the review/edit/export operations over that batch.
"""
from __future__ import annotations
import logging
import uuid
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..models.db_models import LetterBatchDB
from ..models.letters import LetterUnit, RawRecord
from ..services.expiry_letters import (
    LetterExporter,
    LetterGroupingEngine,
    LetterSession,
    build_whatsapp_link,
    clean_phone_number,
    compose_notice_message,
    prepare_letters,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/letters", tags=["letters"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class RecordIn(BaseModel):
    client_name: str = ""
    policy_number: str = ""
    insurer: str = ""
    coverage_category: str = ""
    expiry_date: Optional[str] = None
    insured_value: Optional[float] = None
    premium: Optional[float] = None
    insured_matter: str = ""
    phone: str = ""
    email: str = ""
    agent_name: str = ""
    beneficiary: Optional[str] = None
    record_id: Optional[str] = None


class BatchRequest(BaseModel):
    records: List[RecordIn]


class UnitUpdateRequest(BaseModel):
    reference_number: Optional[str] = None
    executive: Optional[str] = None
    additional_conditions: Optional[str] = None
    address: Optional[str] = None


class PolicyFieldUpdateRequest(BaseModel):
    field: str
    value: Optional[Union[float, str, List[str]]] = None


class ClientFieldUpdateRequest(BaseModel):
    field: str
    value: str = ""


class WhatsAppResponse(BaseModel):
    phone: Optional[str]
    message: str
    url: Optional[str]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_batch(db: Session, batch_id: str) -> LetterBatchDB:
    batch = db.query(LetterBatchDB).filter(LetterBatchDB.id == batch_id).first()
    if not batch:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch


def get_letter(session: LetterSession, unit_id: str) -> LetterUnit:
    letter = session.get(unit_id)
    if letter is None:
        raise HTTPException(status_code=404, detail="Letter not found")
    return letter


def batch_payload(batch: LetterBatchDB, session: LetterSession) -> Dict[str, Any]:
    return {
        "batch_id": batch.id,
        "letters": session.to_list(),
        "stats": session.stats().to_dict(),
        "valid_records": batch.valid_records,
        "total_records": batch.total_records,
        "validation_errors": batch.validation_errors or [],
    }


def save_session(db: Session, batch: LetterBatchDB, session: LetterSession):
    batch.letters = session.to_list()
    db.commit()


def attachment(file_name: str, content: bytes, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_name)}"},
    )


# =============================================================================
# BATCHES
# =============================================================================

@router.post("/batches")
async def create_batch(request: BatchRequest, db: Session = Depends(get_db)):
    """Validate and group a record selection into letters."""
    records = [RawRecord.from_dict(record.model_dump()) for record in request.records]
    engine = LetterGroupingEngine(
        default_currency=config.DEFAULT_CURRENCY,
        reference_prefix=config.REFERENCE_PREFIX,
    )
    prepared = prepare_letters(records, engine)

    session = LetterSession(prepared.letters)
    batch = LetterBatchDB(
        id=str(uuid.uuid4()),
        letters=session.to_list(),
        validation_errors=prepared.validation_errors,
        total_records=prepared.total_records,
        valid_records=prepared.valid_records,
    )
    db.add(batch)
    db.commit()

    logger.info(f"Created batch {batch.id} with {len(prepared.letters)} letters")
    return batch_payload(batch, session)


@router.get("/batches/{batch_id}")
async def read_batch(batch_id: str, db: Session = Depends(get_db)):
    batch = get_batch(db, batch_id)
    return batch_payload(batch, LetterSession.from_list(batch.letters))


@router.delete("/batches/{batch_id}")
async def delete_batch(batch_id: str, db: Session = Depends(get_db)):
    batch = get_batch(db, batch_id)
    db.delete(batch)
    db.commit()
    return {"status": "deleted", "batch_id": batch_id}


# =============================================================================
# EDITS
# =============================================================================

@router.patch("/batches/{batch_id}/units/{unit_id}")
async def update_unit(batch_id: str, unit_id: str, request: UnitUpdateRequest, db: Session = Depends(get_db)):
    """Edit letter-level fields (reference number, executive, conditions, address)."""
    batch = get_batch(db, batch_id)
    session = LetterSession.from_list(batch.letters)
    get_letter(session, unit_id)

    updates = request.model_dump(exclude_unset=True)
    if "address" in updates:
        updates["client"] = {"address": updates.pop("address")}

    try:
        letter = session.update_unit(unit_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    save_session(db, batch, session)
    return letter.to_dict()


@router.patch("/batches/{batch_id}/units/{unit_id}/policies/{policy_index}")
async def update_policy_field(
    batch_id: str,
    unit_id: str,
    policy_index: int,
    request: PolicyFieldUpdateRequest,
    db: Session = Depends(get_db),
):
    batch = get_batch(db, batch_id)
    session = LetterSession.from_list(batch.letters)
    get_letter(session, unit_id)

    try:
        letter = session.update_policy_field(unit_id, policy_index, request.field, request.value)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    save_session(db, batch, session)
    return letter.to_dict()


@router.patch("/batches/{batch_id}/units/{unit_id}/client")
async def update_client_field(
    batch_id: str,
    unit_id: str,
    request: ClientFieldUpdateRequest,
    db: Session = Depends(get_db),
):
    batch = get_batch(db, batch_id)
    session = LetterSession.from_list(batch.letters)
    get_letter(session, unit_id)

    try:
        letter = session.update_client_field(unit_id, request.field, request.value)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    save_session(db, batch, session)
    return letter.to_dict()


# =============================================================================
# EXPORT / HANDOFF
# =============================================================================

@router.get("/batches/{batch_id}/units/{unit_id}/pdf")
async def download_letter(batch_id: str, unit_id: str, db: Session = Depends(get_db)):
    batch = get_batch(db, batch_id)
    letter = get_letter(LetterSession.from_list(batch.letters), unit_id)

    file_name, document = LetterExporter().export_single(letter)
    return attachment(file_name, document, "application/pdf")


@router.get("/batches/{batch_id}/export")
async def export_batch(batch_id: str, db: Session = Depends(get_db)):
    """Bundle every letter of the batch into one zip archive."""
    batch = get_batch(db, batch_id)
    session = LetterSession.from_list(batch.letters)

    bundle_name, bundle, result = LetterExporter().export_bundle(session.letters)
    if not result.success:
        raise HTTPException(status_code=422, detail={"message": "No letters generated", "errors": result.errors})

    response = attachment(bundle_name, bundle, "application/zip")
    response.headers["X-Letters-Generated"] = str(result.total_generated)
    response.headers["X-Letters-Failed"] = str(len(result.errors))
    return response


@router.get("/batches/{batch_id}/units/{unit_id}/whatsapp", response_model=WhatsAppResponse)
async def whatsapp_handoff(batch_id: str, unit_id: str, db: Session = Depends(get_db)):
    batch = get_batch(db, batch_id)
    letter = get_letter(LetterSession.from_list(batch.letters), unit_id)

    country_code = config.MESSAGING_COUNTRY_CODE
    return WhatsAppResponse(
        phone=clean_phone_number(letter.client.phone, country_code),
        message=compose_notice_message(letter),
        url=build_whatsapp_link(letter, country_code),
    )
