import logging
from typing import Any, Dict, List, Optional

from .errors import RemoteFetchError, SyncFailedError
from .models import Artist, Playlist, Snapshot, TrackEntry
from .paginator import PaginatedFetcher
from .rate_limit import FixedDelay

logger = logging.getLogger(__name__)

ARTIST_BATCH_SIZE = 50
PLAYLIST_DELAY_SECONDS = 0.5


def chunked(values: List[str], size: int) -> List[List[str]]:
    return [values[i : i + size] for i in range(0, len(values), size)]


def collect_artist_ids(playlists: List[Playlist]) -> List[str]:
    """Unique artist ids across every track, in first-seen order."""
    seen = set()
    out: List[str] = []
    for playlist in playlists:
        for entry in playlist.tracks:
            for ref in entry.track.artists:
                if ref.id and ref.id not in seen:
                    seen.add(ref.id)
                    out.append(ref.id)
    return out


class BulkSyncPipeline:
    """Fetches everything for one user into a Snapshot.

    Playlists are processed one after another with a rate-limit pause after
    each. Any remote failure aborts the whole sync with SyncFailedError; the
    caller only ever sees a complete Snapshot. Auth errors propagate as-is.
    """

    def __init__(self, client, *, fetcher: Optional[PaginatedFetcher] = None, rate_limiter=None):
        self.client = client
        self.fetcher = fetcher or PaginatedFetcher()
        self.rate_limiter = rate_limiter or FixedDelay(PLAYLIST_DELAY_SECONDS)

    def sync_user(self, user_id: str) -> Snapshot:
        logger.info("Beginning playlist fetch for %s...", user_id)

        try:
            raw_playlists = self.fetcher.fetch_all(
                lambda offset, limit: self.client.list_playlists(user_id, offset, limit),
                stage="playlists",
            )
        except RemoteFetchError as e:
            raise SyncFailedError(f"Fetching playlists for {user_id} failed: {e}", stage="playlists") from e

        playlists = [Playlist.from_spotify(p) for p in raw_playlists]

        for playlist in playlists:
            logger.info("Downloading playlist information for %s...", playlist.name)
            try:
                playlist.tracks = self._fetch_tracks(playlist.id)
            except RemoteFetchError as e:
                raise SyncFailedError(
                    f"Fetching tracks for playlist '{playlist.name}' ({playlist.id}) failed at {e.stage}: {e}",
                    stage=e.stage,
                    playlist_id=playlist.id,
                    playlist_name=playlist.name,
                ) from e
            self.rate_limiter.pause()

        artists = self._fetch_artists(collect_artist_ids(playlists))

        logger.info(
            "Playlist data download complete: %d playlists, %d tracks, %d artists",
            len(playlists),
            sum(len(p.tracks) for p in playlists),
            len(artists),
        )
        return Snapshot(playlists=playlists, artists=artists)

    def _fetch_tracks(self, playlist_id: str) -> List[TrackEntry]:
        entries: List[TrackEntry] = []

        def enrich_page(items: List[Dict[str, Any]]) -> None:
            page_entries = [e for e in (TrackEntry.from_spotify(i) for i in items) if e is not None]
            self._merge_audio_features(page_entries)
            entries.extend(page_entries)

        self.fetcher.fetch_all(
            lambda offset, limit: self.client.list_tracks(playlist_id, offset, limit),
            stage="tracks",
            on_page=enrich_page,
        )
        return entries

    def _merge_audio_features(self, entries: List[TrackEntry]) -> None:
        """One audio-features request for exactly this page's track ids.

        The response is documented as index-aligned with the request. That is
        checked (length and ids); on mismatch results are matched by id.
        """
        with_ids = [e for e in entries if e.track.id]
        if not with_ids:
            return

        ids = [e.track.id for e in with_ids]
        try:
            features = self.client.get_audio_features(ids)
        except RemoteFetchError as e:
            raise e.with_context(stage="audio_features", partial=[]) from e

        aligned = len(features) == len(ids) and all(
            f is None or f.get("id") == track_id for f, track_id in zip(features, ids)
        )
        if aligned:
            for entry, feature in zip(with_ids, features):
                entry.track.audio_features = feature
            return

        logger.warning(
            "Audio features response not aligned with request (%d ids, %d results); matching by id",
            len(ids),
            len(features),
        )
        by_id = {f.get("id"): f for f in features if f is not None}
        for entry in with_ids:
            entry.track.audio_features = by_id.get(entry.track.id)

    def _fetch_artists(self, artist_ids: List[str]) -> List[Artist]:
        artists: List[Artist] = []
        for batch in chunked(artist_ids, ARTIST_BATCH_SIZE):
            try:
                raw = self.client.get_artists(batch)
            except RemoteFetchError as e:
                raise SyncFailedError(
                    f"Fetching artists {len(artists)}..{len(artists) + len(batch)} failed: {e}", stage="artists"
                ) from e
            artists.extend(Artist.from_spotify(a) for a in raw)
        return artists
