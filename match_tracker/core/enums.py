"""Core enums for the match-tracker service."""

from enum import Enum
from typing import Optional


class GameType(Enum):
    """Type of game being tracked."""

    LOL = "LOL"
    TFT = "TFT"

    @property
    def subject_token(self) -> str:
        """Lowercase token used in message subjects and metric labels."""
        return self.value.lower()


class Region(Enum):
    """Riot platform regions with their routing metadata.

    Each region contains:
    - value: Short display name used in the database and commands
    - platform: Platform routing value (e.g. "euw1")
    - cluster: Regional routing value used by account/match endpoints
    """

    # Format: (display, platform, cluster)
    NA = ("NA", "na1", "americas")
    BR = ("BR", "br1", "americas")
    LAN = ("LAN", "la1", "americas")
    LAS = ("LAS", "la2", "americas")
    EUW = ("EUW", "euw1", "europe")
    EUNE = ("EUNE", "eun1", "europe")
    TR = ("TR", "tr1", "europe")
    RU = ("RU", "ru", "europe")
    KR = ("KR", "kr", "asia")
    JP = ("JP", "jp1", "asia")
    OCE = ("OCE", "oc1", "sea")
    TW = ("TW", "tw2", "sea")

    def __init__(self, display: str, platform: str, cluster: str):
        self._value_ = display
        self.platform = platform
        self.cluster = cluster

    @property
    def regional_host(self) -> str:
        """Host serving account-v1 and match endpoints for this region."""
        return f"{self.cluster}.api.riotgames.com"

    @property
    def platform_host(self) -> str:
        """Host serving platform endpoints such as league-v4."""
        return f"{self.platform}.api.riotgames.com"

    @classmethod
    def from_string(cls, value: str) -> "Region":
        """Parse a region from its display name or platform id.

        Raises:
            ValueError: If the value matches no known region
        """
        normalized = value.strip().upper()
        for region in cls:
            if region.value == normalized or region.platform.upper() == normalized:
                return region
        raise ValueError(f"Unknown region: {value!r}")


class QueueType(Enum):
    """League of Legends and TFT queue types with associated metadata.

    Each queue type contains:
    - value: String identifier for the queue
    - queue_id: The Riot API queue ID

    Data from: https://raw.communitydragon.org/latest/plugins/rcp-be-lol-game-data/global/default/v1/queues.json
    """

    # Format: (string_value, queue_id)

    # Core Summoner's Rift PvP
    NORMAL_DRAFT = ("NORMAL_DRAFT", 400)
    RANKED_SOLO_5X5 = ("RANKED_SOLO_5x5", 420)
    NORMAL_BLIND = ("NORMAL_BLIND", 430)
    RANKED_FLEX_SR = ("RANKED_FLEX_SR", 440)
    QUICKPLAY = ("QUICKPLAY", 490)

    # Alternative LoL modes
    ARAM = ("ARAM", 450)
    CLASH = ("CLASH", 700)
    ARAM_CLASH = ("ARAM_CLASH", 720)
    ARENA = ("ARENA", 1700)

    # Rotating game modes
    URF = ("URF", 1900)
    ARURF = ("ARURF", 900)
    ONE_FOR_ALL = ("ONE_FOR_ALL", 1020)
    ULTIMATE_SPELLBOOK = ("ULTIMATE_SPELLBOOK", 1400)
    NEXUS_BLITZ = ("NEXUS_BLITZ", 1300)

    # TFT queue types
    TFT_NORMAL = ("TFT_NORMAL", 1090)
    TFT_RANKED = ("TFT_RANKED", 1100)
    TFT_TUTORIAL = ("TFT_TUTORIAL", 1110)
    TFT_NORMAL_HYPER_ROLL = ("TFT_NORMAL_HYPER_ROLL", 1120)
    TFT_HYPER_ROLL = ("TFT_HYPER_ROLL", 1130)
    TFT_NORMAL_DOUBLE_UP = ("TFT_NORMAL_DOUBLE_UP", 1140)
    TFT_DOUBLE_UP = ("TFT_DOUBLE_UP", 1150)
    TFT_RANKED_DOUBLE_UP = ("TFT_RANKED_DOUBLE_UP", 1160)

    def __init__(self, value: str, queue_id: int):
        self._value_ = value
        self.queue_id = queue_id

    @classmethod
    def from_queue_id(cls, queue_id: int) -> Optional["QueueType"]:
        """Convert a Riot API queue ID to a QueueType.

        Returns None for unknown queue IDs.
        """
        for queue_type in cls:
            if queue_type.queue_id == queue_id:
                return queue_type
        return None
