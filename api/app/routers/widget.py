"""
Widget router - read-only settings for the browser chat widget.
"""

from fastapi import APIRouter, Depends

from app.core.config import Settings, get_settings
from app.models.chat import SpeechFlag, WidgetConfig

router = APIRouter(tags=["widget"])


@router.get("/config", response_model=WidgetConfig)
async def widget_config(settings: Settings = Depends(get_settings)) -> WidgetConfig:
    """Fallback message text, so the widget can recognise no-answer replies."""
    return WidgetConfig(fallback_message=settings.fallback_message.strip())


@router.get("/speech-enabled", response_model=SpeechFlag)
async def speech_enabled(settings: Settings = Depends(get_settings)) -> SpeechFlag:
    return SpeechFlag(enabled=settings.enable_speech)
