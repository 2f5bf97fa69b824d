from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Request,
    Response,
    UploadFile,
)
from pydantic import Field, ValidationError

from buckled.base.dependencies import (
    get_context_manager,
    get_extraction_client,
    get_storage,
)
from buckled.base.errors import (
    InvalidPostalCodeError,
    ProfileNotFoundError,
    UnsupportedFileTypeError,
)
from buckled.base.schemas import CamelModel
from buckled.context.manager import SmartContextManager
from buckled.context.models import ProcessingResult, SmartInsights
from buckled.extraction import ExtractionEngine
from buckled.extraction.interface import DocumentUpload
from buckled.profile.models import (
    BudgetRange,
    CommunicationMethod,
    Coordinates,
    UrgencyPreference,
    UserSessionData,
    VehicleProfile,
)
from buckled.service.models import ExtractedServiceData
from buckled.storage.store import QuickStats, ServiceStats, StorageManager

router = APIRouter()


class TextExtractionRequest(CamelModel):
    text: str = Field(min_length=1)


class ExtractionResponse(CamelModel):
    data: ExtractedServiceData
    processing: ProcessingResult


class PreferencesUpdate(CamelModel):
    preferred_shops: list[str] | None = None
    budget_range: BudgetRange | None = None
    service_radius: float | None = None
    preferred_brands: list[str] | None = None
    communication_method: CommunicationMethod | None = None
    urgency_preference: UrgencyPreference | None = None


class LocationUpdate(CamelModel):
    zip_code: str
    city: str | None = None
    state: str | None = None
    coordinates: Coordinates | None = None


class ImportSummary(CamelModel):
    extracted_data: int
    vehicle_profiles: int
    user_session: bool


@router.post("/extractions/text", response_model=ExtractionResponse)
async def extract_text(
    body: TextExtractionRequest,
    storage: StorageManager = Depends(get_storage),
    client: ExtractionEngine = Depends(get_extraction_client),
    context: SmartContextManager = Depends(get_context_manager),
) -> ExtractionResponse:
    session = await storage.get_user_session()
    data = await client.extract_from_text(body.text, session)
    processing = await context.process_extraction(data)
    return ExtractionResponse(data=data, processing=processing)


@router.post("/extractions/document", response_model=ExtractionResponse)
async def extract_document(
    file: UploadFile = File(...),
    storage: StorageManager = Depends(get_storage),
    client: ExtractionEngine = Depends(get_extraction_client),
    context: SmartContextManager = Depends(get_context_manager),
) -> ExtractionResponse:
    upload = DocumentUpload(
        file_name=file.filename or "upload",
        mime_type=file.content_type or "application/octet-stream",
        content=await file.read(),
    )
    session = await storage.get_user_session()
    try:
        data = await client.extract_from_document(upload, session)
    except UnsupportedFileTypeError as exc:
        raise HTTPException(status_code=415, detail=str(exc)) from exc
    processing = await context.process_extraction(data)
    return ExtractionResponse(data=data, processing=processing)


@router.get("/extractions", response_model=list[ExtractedServiceData])
async def list_extractions(
    storage: StorageManager = Depends(get_storage),
) -> list[ExtractedServiceData]:
    return await storage.get_all_extracted_data()


@router.get("/extractions/search", response_model=list[ExtractedServiceData])
async def search_extractions(
    q: str,
    storage: StorageManager = Depends(get_storage),
) -> list[ExtractedServiceData]:
    return await storage.search_extracted_data(q)


@router.get("/extractions/{data_id}", response_model=ExtractedServiceData)
async def get_extraction(
    data_id: UUID,
    storage: StorageManager = Depends(get_storage),
) -> ExtractedServiceData:
    data = await storage.get_extracted_data(data_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Extraction not found")
    return data


@router.delete("/extractions/{data_id}", status_code=204)
async def delete_extraction(
    data_id: UUID,
    storage: StorageManager = Depends(get_storage),
) -> None:
    if not await storage.delete_extracted_data(data_id):
        raise HTTPException(status_code=404, detail="Extraction not found")


@router.get("/vehicles", response_model=list[VehicleProfile])
async def list_vehicles(
    storage: StorageManager = Depends(get_storage),
) -> list[VehicleProfile]:
    return await storage.get_all_vehicle_profiles()


@router.get("/vehicles/{vehicle_id}", response_model=VehicleProfile)
async def get_vehicle(
    vehicle_id: UUID,
    storage: StorageManager = Depends(get_storage),
) -> VehicleProfile:
    profile = await storage.get_vehicle_profile(vehicle_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Vehicle profile not found")
    return profile


@router.delete("/vehicles/{vehicle_id}", status_code=204)
async def delete_vehicle(
    vehicle_id: UUID,
    storage: StorageManager = Depends(get_storage),
) -> None:
    try:
        await storage.delete_vehicle_profile(vehicle_id)
    except ProfileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/vehicles/{vehicle_id}/insights", response_model=SmartInsights)
async def vehicle_insights(
    vehicle_id: UUID,
    context: SmartContextManager = Depends(get_context_manager),
) -> SmartInsights:
    insights = await context.generate_smart_insights(vehicle_id)
    if insights is None:
        raise HTTPException(status_code=404, detail="No insights for this vehicle")
    return insights


@router.get("/session", response_model=UserSessionData)
async def get_session(
    storage: StorageManager = Depends(get_storage),
) -> UserSessionData:
    return await storage.get_user_session()


@router.patch("/session/preferences", response_model=UserSessionData)
async def update_preferences(
    body: PreferencesUpdate,
    storage: StorageManager = Depends(get_storage),
) -> UserSessionData:
    return await storage.update_user_preferences(body.model_dump(exclude_unset=True))


@router.put("/session/location", response_model=UserSessionData)
async def update_location(
    body: LocationUpdate,
    storage: StorageManager = Depends(get_storage),
) -> UserSessionData:
    try:
        return await storage.update_user_location(
            body.zip_code,
            city=body.city,
            state=body.state,
            coordinates=body.coordinates,
        )
    except InvalidPostalCodeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("/stats", response_model=ServiceStats)
async def service_stats(
    storage: StorageManager = Depends(get_storage),
) -> ServiceStats:
    return await storage.get_service_stats()


@router.get("/stats/quick", response_model=QuickStats)
async def quick_stats(
    storage: StorageManager = Depends(get_storage),
) -> QuickStats:
    return await storage.get_quick_stats()


@router.get("/data/export")
async def export_data(storage: StorageManager = Depends(get_storage)) -> Response:
    return Response(
        content=await storage.export_all_data(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="buckled-export.json"'},
    )


@router.post("/data/import", response_model=ImportSummary)
async def import_data(
    request: Request,
    storage: StorageManager = Depends(get_storage),
) -> ImportSummary:
    try:
        document = await storage.import_data(await request.body())
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail="Invalid export document") from exc
    return ImportSummary(
        extracted_data=len(document.extracted_data),
        vehicle_profiles=len(document.vehicle_profiles),
        user_session=document.user_session is not None,
    )


@router.delete("/data", status_code=204)
async def clear_data(storage: StorageManager = Depends(get_storage)) -> None:
    await storage.clear_all_data()
