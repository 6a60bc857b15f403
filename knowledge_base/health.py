from fastapi import APIRouter, Depends
from pydantic import BaseModel

from knowledge_base.dependencies import Services, get_services

router = APIRouter()


class ServiceStatus(BaseModel):
	milvus: bool
	ollama: bool


@router.get("/health")
async def health() -> dict[str, str]:
	return {"status": "ok"}


@router.get("/api/status", response_model=ServiceStatus)
async def status(services: Services = Depends(get_services)) -> ServiceStatus:
	return ServiceStatus(
		milvus=await services.milvus.ping(),
		ollama=await services.ollama.ping(),
	)
