from typing import Dict, List, Optional, Sequence

from fastapi.testclient import TestClient

from remix_engines.server import create_app
from remix_engines.video_variants.models import Clip, ClipGroup, MixingConfiguration

DEFAULT_HEADERS: Dict[str, str] = {
    "X-Tenant-Id": "t_test",
    "X-Mode": "saas",
    "X-Project-Id": "p_variants",
}


def make_clips(durations: Sequence[float], *, has_audio: bool = True, prefix: str = "c") -> List[Clip]:
    return [
        Clip(id=f"{prefix}{i}", duration_seconds=d, has_audio=has_audio, source=f"/media/{prefix}{i}.mp4")
        for i, d in enumerate(durations)
    ]


def make_grouped_clips(group_sizes: Dict[str, int]) -> List[Clip]:
    clips: List[Clip] = []
    for group_id, size in group_sizes.items():
        for i in range(size):
            clips.append(Clip(id=f"{group_id}_{i}", duration_seconds=5.0, group_id=group_id))
    return clips


def make_groups(order: Dict[str, int]) -> List[ClipGroup]:
    return [ClipGroup(id=group_id, name=group_id.upper(), order=pos) for group_id, pos in order.items()]


def config(**overrides) -> MixingConfiguration:
    base = {"seed": 7}
    base.update(overrides)
    return MixingConfiguration(**base)


def make_client(headers: Optional[Dict[str, str]] = None) -> TestClient:
    client = TestClient(create_app())
    client.headers.update(headers if headers is not None else DEFAULT_HEADERS)
    return client
