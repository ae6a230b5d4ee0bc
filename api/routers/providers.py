"""GET /providers/ — which providers and models a job may use."""

from fastapi import APIRouter

from api.schemas.metrics import ProviderInfo
from providers.registry import get_provider, is_builtin_provider, provider_names

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("/", response_model=list[ProviderInfo])
async def list_providers() -> list[ProviderInfo]:
    infos = []
    for name in provider_names():
        provider = get_provider(name)
        infos.append(ProviderInfo(
            name=name,
            models=provider.models,
            supports_streaming=provider.supports_streaming,
            builtin=is_builtin_provider(name),
        ))
    return infos
