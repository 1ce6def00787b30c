"""Human readable summaries of levels."""

from typing import List

from sfm_manager import Level, Map


def count_events(sfm_map: Map) -> int:
    """Count every event on a map, including nested events and chained objects."""
    total = 0
    for obj in sfm_map.objects:
        for node in obj.chain():
            for event in node.events:
                total += sum(1 for _ in event.walk())
    return total


def describe_level(level: Level) -> str:
    """Return a multi-line summary of a level."""
    head = level.head
    lines: List[str] = [
        f"Level: {head.name} (version {head.version})",
        f"Submap order: {', '.join(str(i) for i in head.submap_order) or '-'}",
        f"Screenshot submap: {head.screenshot_submap}, last submap: {head.last_submap}",
        f"Maps: {len(level.maps)}",
    ]

    for index, sfm_map in enumerate(level.maps):
        map_head = sfm_map.head
        nested = sum(
            sum(1 for _ in obj.chain()) - 1 for obj in sfm_map.objects
        )
        lines.append(
            f"  [{index}] {map_head.name}: {map_head.width}x{map_head.height}, "
            f"tilesets {map_head.tileset}/{map_head.tileset2}, music {map_head.music}"
        )
        lines.append(
            f"      objects: {len(sfm_map.objects)} (+{nested} nested), "
            f"events: {count_events(sfm_map)}"
        )

    return "\n".join(lines)
