from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Credentials:
    client_id: str
    client_secret: str
    redirect_uri: str


@dataclass(frozen=True)
class TokenState:
    """Persisted OAuth token fields.

    An access token is only meaningful together with a refresh token and an
    expiry; constructing one without the others raises ValueError.
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at_ms: Optional[int] = None

    def __post_init__(self):
        if self.access_token and (not self.refresh_token or self.expires_at_ms is None):
            raise ValueError("access_token requires refresh_token and expires_at_ms")

    @property
    def has_access_token(self) -> bool:
        return bool(self.access_token)

    def is_expired(self, now_ms: int, *, margin_ms: int = 0) -> bool:
        if self.expires_at_ms is None:
            return True
        return now_ms >= int(self.expires_at_ms) - int(margin_ms)


@dataclass(frozen=True)
class ConfigState:
    """Credentials plus token state, passed explicitly to the token manager."""

    credentials: Credentials
    token: TokenState = field(default_factory=TokenState)

    def with_token(self, token: TokenState) -> "ConfigState":
        return replace(self, token=token)


@dataclass(frozen=True)
class TokenGrant:
    """Token endpoint response. ``refresh_token`` may be absent on refresh."""

    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None

    @staticmethod
    def from_spotify_token_response(payload: Dict[str, Any]) -> "TokenGrant":
        return TokenGrant(
            access_token=str(payload.get("access_token") or ""),
            expires_in=int(payload.get("expires_in") or 0),
            refresh_token=payload.get("refresh_token") or None,
        )


@dataclass(frozen=True)
class Page:
    """One page of a paginated endpoint; ``next`` is the continuation cursor."""

    items: List[Any]
    next: Optional[str] = None

    @property
    def has_next(self) -> bool:
        return bool(self.next)


@dataclass(frozen=True)
class ArtistRef:
    id: Optional[str]
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ArtistRef":
        return ArtistRef(id=data.get("id"), name=str(data.get("name") or ""))


@dataclass
class Track:
    id: Optional[str]
    name: str
    duration_ms: int
    artists: List[ArtistRef]
    album_name: Optional[str] = None
    audio_features: Optional[Dict[str, Any]] = None

    @classmethod
    def from_spotify(cls, obj: Dict[str, Any]) -> "Track":
        album = obj.get("album") or {}
        return cls(
            id=obj.get("id"),
            name=str(obj.get("name") or ""),
            duration_ms=int(obj.get("duration_ms") or 0),
            artists=[ArtistRef.from_dict(a) for a in (obj.get("artists") or []) if isinstance(a, dict)],
            album_name=album.get("name") if isinstance(album, dict) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "duration_ms": self.duration_ms,
            "artists": [a.to_dict() for a in self.artists],
            "album_name": self.album_name,
            "audio_features": self.audio_features,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        return cls(
            id=data.get("id"),
            name=str(data.get("name") or ""),
            duration_ms=int(data.get("duration_ms") or 0),
            artists=[ArtistRef.from_dict(a) for a in data.get("artists") or []],
            album_name=data.get("album_name"),
            audio_features=data.get("audio_features"),
        )


@dataclass
class TrackEntry:
    added_at: Optional[str]
    track: Track

    @classmethod
    def from_spotify(cls, item: Dict[str, Any]) -> Optional["TrackEntry"]:
        """Build an entry from a playlist item, or None when the track was removed."""
        track_obj = item.get("track")
        if not isinstance(track_obj, dict):
            return None
        return cls(added_at=item.get("added_at"), track=Track.from_spotify(track_obj))

    def to_dict(self) -> Dict[str, Any]:
        return {"added_at": self.added_at, "track": self.track.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackEntry":
        return cls(added_at=data.get("added_at"), track=Track.from_dict(data.get("track") or {}))


@dataclass
class Playlist:
    id: str
    name: str
    owner_id: Optional[str]
    owner_display_name: Optional[str]
    collaborative: bool
    track_total: int
    tracks: List[TrackEntry] = field(default_factory=list)

    @property
    def created_at(self) -> Optional[str]:
        # Spotify does not expose a creation date; the earliest add stands in for it.
        # ISO-8601 UTC strings sort chronologically.
        stamps = [e.added_at for e in self.tracks if e.added_at]
        return min(stamps) if stamps else None

    @classmethod
    def from_spotify(cls, obj: Dict[str, Any]) -> "Playlist":
        owner = obj.get("owner") or {}
        return cls(
            id=str(obj.get("id") or ""),
            name=str(obj.get("name") or ""),
            owner_id=owner.get("id"),
            owner_display_name=owner.get("display_name"),
            collaborative=bool(obj.get("collaborative")),
            track_total=int((obj.get("tracks") or {}).get("total") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "owner_display_name": self.owner_display_name,
            "collaborative": self.collaborative,
            "track_total": self.track_total,
            "created_at": self.created_at,
            "tracks": [e.to_dict() for e in self.tracks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Playlist":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            owner_id=data.get("owner_id"),
            owner_display_name=data.get("owner_display_name"),
            collaborative=bool(data.get("collaborative")),
            track_total=int(data.get("track_total") or 0),
            tracks=[TrackEntry.from_dict(e) for e in data.get("tracks") or []],
        )


@dataclass(frozen=True)
class Artist:
    id: str
    name: str
    genres: List[str] = field(default_factory=list)

    @staticmethod
    def from_spotify(obj: Dict[str, Any]) -> "Artist":
        genres: List[str] = []
        for g in obj.get("genres") or []:
            if g not in genres:
                genres.append(str(g))
        return Artist(id=str(obj.get("id") or ""), name=str(obj.get("name") or ""), genres=genres)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "genres": list(self.genres)}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Artist":
        return Artist(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            genres=[str(g) for g in data.get("genres") or []],
        )


@dataclass
class Snapshot:
    """Everything fetched for one user: the unit of caching."""

    playlists: List[Playlist] = field(default_factory=list)
    artists: List[Artist] = field(default_factory=list)

    def artist_ids(self) -> List[str]:
        return [a.id for a in self.artists]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playlists": [p.to_dict() for p in self.playlists],
            "artists": [a.to_dict() for a in self.artists],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        return cls(
            playlists=[Playlist.from_dict(p) for p in data.get("playlists") or []],
            artists=[Artist.from_dict(a) for a in data.get("artists") or []],
        )
