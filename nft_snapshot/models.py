from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RawTokenEntry:
    """One NFToken occurrence as reported by a ledger_data page."""
    token_id: str
    uri_hex: Optional[str] = None


@dataclass
class NFTRecord:
    id: str
    issuer: str
    seq: int
    uri: str = ''
    image_url: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    colors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        # Key names are what the browser viewer reads from nft-data.json
        return {
            'id': self.id,
            'issuer': self.issuer,
            'seq': self.seq,
            'uri': self.uri,
            'imageUrl': self.image_url,
            'name': self.name,
            'description': self.description,
            'colors': list(self.colors),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NFTRecord':
        return cls(
            id=data['id'],
            issuer=data.get('issuer', ''),
            seq=int(data.get('seq', 0)),
            uri=data.get('uri') or '',
            image_url=data.get('imageUrl'),
            name=data.get('name'),
            description=data.get('description'),
            colors=list(data.get('colors') or []),
        )
