import csv
import io
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from linkport.domain.entities import (
    Match, MatchBatch, MirrorPlaylist, Playlist, ScoredCandidate, Track
)
from linkport.domain.normalization import strip_variant_suffix


CSV_HEADER = ['Original Title', 'Original Artist', 'Matched Title', 'Matched Artist', 'Status', 'Confidence']


def track_to_json(track: Track) -> Dict[str, Any]:
    """Serialize track to JSON; absent optional fields are omitted."""
    data: Dict[str, Any] = {"title": track.title, "artist": track.artist}
    if track.album is not None:
        data["album"] = track.album
    if track.duration_seconds is not None:
        data["durationSeconds"] = track.duration_seconds
    if track.platform_ref is not None:
        data["platformRef"] = track.platform_ref
    return data


def track_from_json(data: Dict[str, Any]) -> Track:
    """Deserialize track from JSON. Accepts the legacy ``duration`` key."""
    if not isinstance(data, dict):
        raise ValueError(f"Track must be an object, got {type(data).__name__}")
    duration = data.get("durationSeconds", data.get("duration"))
    return Track(
        title=str(data.get("title") or ""),
        artist=str(data.get("artist") or ""),
        album=data.get("album"),
        duration_seconds=int(duration) if duration is not None else None,
        platform_ref=data.get("platformRef"),
    )


def match_to_json(match: Match) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "originalTrack": track_to_json(match.original_track),
        "status": match.status.value,
        "alternativeTracks": [track_to_json(t) for t in match.alternative_tracks],
    }
    if match.matched_track is not None:
        data["matchedTrack"] = track_to_json(match.matched_track)
        data["confidence"] = match.confidence
        data["baseTitle"] = strip_variant_suffix(match.matched_track.title)
    if match.best_candidate is not None:
        data["bestCandidate"] = {
            "track": track_to_json(match.best_candidate.track),
            "confidence": match.best_candidate.confidence,
        }
    if match.note:
        data["note"] = match.note
    return data


def match_from_json(data: Dict[str, Any]) -> Match:
    best = data.get("bestCandidate")
    best_candidate: Optional[ScoredCandidate] = None
    if best:
        best_candidate = ScoredCandidate(track_from_json(best["track"]), best["confidence"])
    elif data.get("matchedTrack"):
        best_candidate = ScoredCandidate(track_from_json(data["matchedTrack"]), data["confidence"])
    return Match(
        original_track=track_from_json(data["originalTrack"]),
        best_candidate=best_candidate,
        alternative_tracks=tuple(track_from_json(t) for t in data.get("alternativeTracks", [])),
        note=data.get("note"),
    )


def playlist_to_json(playlist: Playlist) -> Dict[str, Any]:
    return {
        "title": playlist.title,
        "description": playlist.description,
        "platform": playlist.platform,
        "originalUrl": playlist.original_url,
        "songs": [track_to_json(s) for s in playlist.songs],
        "totalDuration": playlist.total_duration,
    }


def playlist_from_json(data: Dict[str, Any]) -> Playlist:
    return Playlist(
        title=data["title"],
        platform=data["platform"],
        original_url=data["originalUrl"],
        songs=tuple(track_from_json(s) for s in data.get("songs", [])),
        description=data.get("description", ""),
    )


def mirror_to_json(mirror: MirrorPlaylist) -> Dict[str, Any]:
    return {
        "id": mirror.id,
        "title": mirror.title,
        "description": mirror.description,
        "platform": mirror.platform,
        "originalUrl": mirror.original_url,
        "shareableUrl": mirror.shareable_url,
        "createdAt": mirror.created_at,
        "songs": [track_to_json(s) for s in mirror.songs],
        "totalDuration": mirror.total_duration,
    }


def mirror_from_json(data: Dict[str, Any]) -> MirrorPlaylist:
    return MirrorPlaylist(
        id=data["id"],
        title=data["title"],
        description=data.get("description", ""),
        platform=data["platform"],
        original_url=data["originalUrl"],
        shareable_url=data["shareableUrl"],
        created_at=data["createdAt"],
        songs=tuple(track_from_json(s) for s in data.get("songs", [])),
        total_duration=data.get("totalDuration", 0),
    )


def batch_to_json(batch: MatchBatch) -> Dict[str, Any]:
    return {
        "matches": [match_to_json(m) for m in batch],
        "stats": batch.stats(),
    }


def batch_to_csv(batch: MatchBatch) -> str:
    """CSV export: one row per source track, in playlist order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for match in batch:
        matched = match.matched_track
        writer.writerow([
            match.original_track.title,
            match.original_track.artist,
            matched.title if matched else '',
            matched.artist if matched else '',
            match.status.value,
            f"{match.confidence:.2f}" if match.confidence is not None else '',
        ])
    return buffer.getvalue()


@dataclass
class ConversionReport:
    """Complete result of a playlist conversion."""

    source_playlist: Playlist
    target_playlist: MirrorPlaylist
    batch: MatchBatch

    @property
    def shareable_url(self) -> str:
        return self.target_playlist.shareable_url

    @property
    def stats(self) -> Dict[str, int]:
        return self.batch.stats()

    def to_json(self) -> Dict[str, Any]:
        """Serialize report to JSON."""
        return {
            "sourcePlaylist": playlist_to_json(self.source_playlist),
            "targetPlaylist": mirror_to_json(self.target_playlist),
            "matches": [match_to_json(m) for m in self.batch],
            "shareableUrl": self.shareable_url,
            "stats": self.stats,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ConversionReport":
        """Deserialize report from JSON. Stats are recomputed from the matches."""
        matches: List[Match] = [match_from_json(m) for m in data.get("matches", [])]
        return cls(
            source_playlist=playlist_from_json(data["sourcePlaylist"]),
            target_playlist=mirror_from_json(data["targetPlaylist"]),
            batch=MatchBatch(matches),
        )

    def to_csv(self) -> str:
        return batch_to_csv(self.batch)
