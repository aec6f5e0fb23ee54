"""
RIS Live Data Models

Typed views of the records published on the RIS Live firehose. Each record
is decoded into a RisMessage, digested, filtered, and handed to the consumer
queue.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class RisAnnouncement:
    """One announcement block: a next hop and the prefixes reachable through it."""
    next_hop: str = ""
    prefixes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {'next_hop': self.next_hop, 'prefixes': list(self.prefixes)}

    @classmethod
    def from_dict(cls, data: dict) -> 'RisAnnouncement':
        return cls(
            next_hop=data.get('next_hop', ''),
            prefixes=list(data.get('prefixes') or [])
        )


@dataclass
class RisMessageData:
    """
    Payload of a ris_message record.

    `path` holds the AS path exactly as decoded from the feed: numbers mixed
    with nested AS-set arrays. `digested_path` is derived from it by the path
    digester and stays empty until digestion succeeds.
    """
    timestamp: float = 0.0
    peer: str = ""
    peer_asn: str = ""
    id: str = ""
    host: str = ""
    type: str = ""
    path: List[Any] = field(default_factory=list)
    digested_path: List[int] = field(default_factory=list)
    community: List[Tuple[int, int]] = field(default_factory=list)
    origin: str = ""
    announcements: List[RisAnnouncement] = field(default_factory=list)
    raw: str = ""

    def all_prefixes(self) -> List[str]:
        """Union of announced prefixes across every announcement, in feed order."""
        prefixes = []
        for announcement in self.announcements:
            prefixes.extend(announcement.prefixes)
        return prefixes

    def first_prefix(self) -> Optional[str]:
        for announcement in self.announcements:
            if announcement.prefixes:
                return announcement.prefixes[0]
        return None

    def to_dict(self) -> dict:
        """Convert to the feed's JSON shape, plus the digested path."""
        return {
            'timestamp': self.timestamp,
            'peer': self.peer,
            'peer_asn': self.peer_asn,
            'id': self.id,
            'host': self.host,
            'type': self.type,
            'path': self.path,
            'digested_path': list(self.digested_path),
            'community': [list(pair) for pair in self.community],
            'origin': self.origin,
            'announcements': [a.to_dict() for a in self.announcements],
            'raw': self.raw
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'RisMessageData':
        """Create from a decoded feed object. The digested path is never read from input."""
        timestamp = data.get('timestamp') or 0.0
        return cls(
            timestamp=float(timestamp),
            peer=data.get('peer', ''),
            peer_asn=str(data.get('peer_asn', '')),
            id=data.get('id', ''),
            host=data.get('host', ''),
            type=data.get('type', ''),
            path=list(data.get('path') or []),
            community=[tuple(pair) for pair in data.get('community') or []],
            origin=data.get('origin', ''),
            announcements=[
                RisAnnouncement.from_dict(a) for a in data.get('announcements') or []
            ],
            raw=data.get('raw', '')
        )


@dataclass
class RisMessage:
    """A single decoded record from the firehose."""
    type: str = ""
    data: Optional[RisMessageData] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'data': self.data.to_dict() if self.data is not None else None
        }

    @classmethod
    def from_dict(cls, record: dict) -> 'RisMessage':
        if not isinstance(record, dict):
            raise ValueError(f"Expected a JSON object, got {type(record).__name__}")
        data = record.get('data')
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"Expected 'data' to be an object, got {type(data).__name__}")
        return cls(
            type=record.get('type', ''),
            data=RisMessageData.from_dict(data) if data is not None else None
        )
