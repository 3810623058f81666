"""Configuration consumed by the ownership core."""
from typing import List, Optional

from pydantic import BaseModel, Field

from app import config


class BrokerSettings(BaseModel):
    automation_agent_id: Optional[str] = Field(default=None, description="Agent ID that represents the bot")
    human_agent_id: Optional[str] = Field(default=None, description="Agent ID that escalations go to")
    escalation_phrases: List[str] = Field(default_factory=lambda: list(config.DEFAULT_ESCALATION_PHRASES))
    resolution_phrases: List[str] = Field(default_factory=lambda: list(config.DEFAULT_RESOLUTION_PHRASES))
    media_ack_message: str = config.MEDIA_ACK_MESSAGE
    welcome_back_message: str = config.WELCOME_BACK_MESSAGE
    deduplicate_messages: bool = True
    dedup_window_size: int = 1000

    @classmethod
    def from_config(cls) -> "BrokerSettings":
        return cls(
            automation_agent_id=config.FRESHCHAT_BOT_AGENT_ID,
            human_agent_id=config.HUMAN_AGENT_ID,
            escalation_phrases=config.ESCALATION_PHRASES,
            resolution_phrases=config.RESOLUTION_PHRASES,
            media_ack_message=config.MEDIA_ACK_MESSAGE,
            welcome_back_message=config.WELCOME_BACK_MESSAGE,
            deduplicate_messages=config.DEDUPLICATE_MESSAGES,
            dedup_window_size=config.DEDUP_WINDOW_SIZE,
        )

    def is_automation_agent(self, agent_id: Optional[str]) -> bool:
        return bool(agent_id) and agent_id == self.automation_agent_id
