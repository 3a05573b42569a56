# app/modules/consultas/router.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.config.database import get_db, get_readonly_db
from app.core.auth.dependencies import get_consulta_user
from app.shared.database.models import ConsultaSubtype, ConsultaType
from .service import ConsultasService
from .schemas import ConsultaECParams, ConsultaICSParams, ConsultaResponse

router = APIRouter()

@router.get("/ec", response_model=ConsultaResponse)
async def consulta_ec(
    request: Request,
    params: ConsultaECParams = Depends(),
    current_user = Depends(get_consulta_user),
    db: Session = Depends(get_db),
    readonly_db: Session = Depends(get_readonly_db)
):
    """Estado de cuenta de bienes inmuebles por clave catastral o DNI"""
    service = ConsultasService(db, readonly_db)
    return service.consultar(
        ConsultaType.EC, ConsultaSubtype.NORMAL, params.model_dump(), current_user, request
    )

@router.get("/ec/amnistia", response_model=ConsultaResponse)
async def consulta_ec_amnistia(
    request: Request,
    params: ConsultaECParams = Depends(),
    current_user = Depends(get_consulta_user),
    db: Session = Depends(get_db),
    readonly_db: Session = Depends(get_readonly_db)
):
    """Estado de cuenta con amnistía: sin recargo en los años cubiertos mientras esté vigente"""
    service = ConsultasService(db, readonly_db)
    return service.consultar(
        ConsultaType.EC, ConsultaSubtype.AMNISTIA, params.model_dump(), current_user, request
    )

@router.get("/ics", response_model=ConsultaResponse)
async def consulta_ics(
    request: Request,
    params: ConsultaICSParams = Depends(),
    current_user = Depends(get_consulta_user),
    db: Session = Depends(get_db),
    readonly_db: Session = Depends(get_readonly_db)
):
    """Estado de cuenta de industria y comercio por número ICS o DNI"""
    service = ConsultasService(db, readonly_db)
    return service.consultar(
        ConsultaType.ICS, ConsultaSubtype.NORMAL, params.model_dump(), current_user, request
    )

@router.get("/ics/amnistia", response_model=ConsultaResponse)
async def consulta_ics_amnistia(
    request: Request,
    params: ConsultaICSParams = Depends(),
    current_user = Depends(get_consulta_user),
    db: Session = Depends(get_db),
    readonly_db: Session = Depends(get_readonly_db)
):
    service = ConsultasService(db, readonly_db)
    return service.consultar(
        ConsultaType.ICS, ConsultaSubtype.AMNISTIA, params.model_dump(), current_user, request
    )
