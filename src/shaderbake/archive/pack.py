"""Pack every indexed artifact into a C++ header/source pair."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from shaderbake import fs
from shaderbake.archive.folder import FolderArchive

logger = logging.getLogger(__name__)

ALIGNMENT = 16
BYTES_PER_LINE = 16

HEADER_TEMPLATE = """\
// generated by shaderbake, do not edit
#ifndef SHADERBAKE_ASSETS_H
#define SHADERBAKE_ASSETS_H

#include <cstddef>

namespace shaderbake {
// Sets *ptr/*size to the packed bytes for uri, or to null/0 when unknown.
void get_asset_bytes(const char *uri, const void **ptr, std::size_t *size);
} // namespace shaderbake

#endif // SHADERBAKE_ASSETS_H
"""

SOURCE_TEMPLATE = """\
// generated by shaderbake, do not edit
#include "{header}"

#include <cstdint>
#include <string>
#include <unordered_map>

namespace shaderbake {{
namespace {{
struct DataRange {{
  std::size_t offset;
  std::size_t size;
}};

alignas({alignment}) const std::uint8_t s_bytes[] = {{
{bytes}
}};

const std::unordered_map<std::string, DataRange> &indices() {{
  static const std::unordered_map<std::string, DataRange> table = {{
{entries}
  }};
  return table;
}}
}} // namespace

void get_asset_bytes(const char *uri, const void **ptr, std::size_t *size) {{
  auto it = indices().find(uri);
  if (it == indices().end()) {{
    *ptr = nullptr;
    *size = 0;
    return;
  }}
  *ptr = s_bytes + it->second.offset;
  *size = it->second.size;
}}
}} // namespace shaderbake
"""


@dataclass(slots=True)
class PackedEntry:
    uri: str
    offset: int
    size: int


def _c_string(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def pack_bytes(archive: FolderArchive) -> tuple[bytes, list[PackedEntry]]:
    """Concatenate artifacts, each starting on an ALIGNMENT boundary."""
    blob = bytearray()
    entries: list[PackedEntry] = []
    for target_id in archive.target_ids():
        data = archive.lookup(target_id)
        if data is None:
            logger.warning("skipping %s: artifact missing", target_id.uri())
            continue
        entries.append(PackedEntry(uri=target_id.uri(), offset=len(blob), size=len(data)))
        blob += data
        blob += bytes(-len(blob) % ALIGNMENT)
    return bytes(blob), entries


def render_source(header_name: str, blob: bytes, entries: list[PackedEntry]) -> str:
    rows = [
        "  " + ", ".join(str(b) for b in blob[start : start + BYTES_PER_LINE]) + ","
        for start in range(0, len(blob), BYTES_PER_LINE)
    ]
    if not rows:
        rows = ["  0,"]
    table = [
        f"      {{{_c_string(entry.uri)}, DataRange{{{entry.offset}, {entry.size}}}}},"
        for entry in entries
    ]
    return SOURCE_TEMPLATE.format(
        header=header_name,
        alignment=ALIGNMENT,
        bytes="\n".join(rows),
        entries="\n".join(table),
    )


def pack_archive(output_dir: Path, header: Path, source: Path) -> list[PackedEntry]:
    archive = FolderArchive(output_dir)
    blob, entries = pack_bytes(archive)
    fs.write_text(header, HEADER_TEMPLATE)
    fs.write_text(source, render_source(Path(header).name, blob, entries))
    logger.info("packed %d artifacts (%d bytes) into %s", len(entries), len(blob), source)
    return entries
