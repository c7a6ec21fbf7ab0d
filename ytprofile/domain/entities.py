from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


PROVIDER_NAME = "youtube"


@dataclass(frozen=True)
class Identity:
    """Base record of the authenticated user (the YouTube channel)."""

    id: Optional[str] = None
    display_name: Optional[str] = None
    picture_url: Optional[str] = None
    raw: str = ""
    raw_parsed: Any = None

    @property
    def has_channel(self) -> bool:
        return self.id is not None


@dataclass
class PlaylistRef:
    """One playlist of the channel.

    Provider fields are kept verbatim in ``fields``. ``loaded`` flips once the
    playlist items for this entry have been fetched; ``data`` then holds the
    parsed body, which may itself be ``None`` for a JSON ``null``.
    """

    id: str
    fields: Dict[str, Any] = field(default_factory=dict)
    data: Any = None
    loaded: bool = False

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "PlaylistRef":
        fields = {k: v for k, v in item.items() if k not in ('id', 'data')}
        return cls(id=item['id'], fields=fields)

    def load(self, data: Any) -> None:
        self.data = data
        self.loaded = True

    @property
    def title(self) -> Optional[str]:
        snippet = self.fields.get('snippet')
        if isinstance(snippet, dict):
            return snippet.get('title')
        return None

    @property
    def is_loaded(self) -> bool:
        return self.loaded

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {'id': self.id}
        out.update(self.fields)
        if self.loaded:
            out['data'] = self.data
        return out


@dataclass
class Profile:
    """Normalized profile handed to the application once the cascade completes."""

    provider: str = PROVIDER_NAME
    id: Optional[str] = None
    display_name: Optional[str] = None
    picture: Optional[str] = None
    raw: str = ""
    json: Any = None
    playlists: List[PlaylistRef] = field(default_factory=list)

    @classmethod
    def from_identity(cls, identity: Identity) -> "Profile":
        return cls(
            id=identity.id,
            display_name=identity.display_name,
            picture=identity.picture_url,
            raw=identity.raw,
            json=identity.raw_parsed,
        )

    @property
    def is_complete(self) -> bool:
        return all(p.is_loaded for p in self.playlists)

    def to_dict(self) -> Dict[str, Any]:
        """Return the externally visible profile shape.

        Identity fields are omitted when the user has no channel.
        """
        out: Dict[str, Any] = {'provider': self.provider}
        if self.id is not None:
            out['id'] = self.id
        if self.display_name is not None:
            out['displayName'] = self.display_name
        if self.picture is not None:
            out['picture'] = self.picture
        out['_raw'] = self.raw
        out['_json'] = self.json
        out['playlists'] = [p.to_dict() for p in self.playlists]
        return out
