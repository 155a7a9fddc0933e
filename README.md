# lightmusic

`lightmusic` holds the core pieces of a self-hosted music server:

- a **media library scanner** (`lightmusic.scanner`). It walks a music
  directory and scans audio files that are new or changed. It records tracks,
  directories and media libraries in a catalog. It also removes entries whose
  files are gone and reports duplicates.
- a **track metadata parser** (`lightmusic.scanner.metadata`). It splits
  multi-valued artist and genre tags on configurable delimiters and keeps
  whitelisted artist names whole. It also normalises dates and track and disc
  numbers.
- a **login throttler** (`lightmusic.auth`). It refuses a client address for 60
  seconds after five bad login attempts in a row.

It needs nothing outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Command line

```
lightmusic conf/lms.conf
```

The command prints a banner, the configuration file it was given and
`LMS server starting...`, then exits with status 0. It does not read the file
and does not start a server. Run without an argument, it prints usage help
and exits with status 1.

## Scanning a media library

`ScannerService` (in `lightmusic.scanner.service`) runs a scan on a background
thread. The scan works against a `Catalog`. `MemoryCatalog` (in
`lightmusic.scanner.model`) is a thread-safe catalog held in memory.

```python
from lightmusic.scanner.model import MemoryCatalog
from lightmusic.scanner.service import ScannerService
from lightmusic.scanner.stats import ScanOptions

catalog = MemoryCatalog()
config = {"media-library-path": "/srv/music"}

with ScannerService(catalog, "cache", config) as scanner:
    scanner.events().scan_complete.connect(lambda stats: print(stats.changes_count()))
    scanner.request_immediate_scan(ScanOptions())
    scanner.wait(10)
    print(scanner.status().current_state)
```

- `request_immediate_scan(options)` starts a scan. It does nothing while a
  scan is in progress.
- `request_reload()` asks the running scan to stop and sets the state back to
  `ScannerState.NOT_SCHEDULED`.
- `status()` returns a `ScannerStatus` snapshot. It includes the stats of the
  last complete scan.
- `wait(timeout)` waits for the scan thread. It returns `True` once no scan
  is running.
- `close()` asks the scan to stop and waits for it. Leaving a `with` block
  does the same.

A scan runs these steps in order:

1. `ScanFilesStep` finds files with a supported extension. It scans those
   that are new, or whose size or modification time has changed.
2. `CheckForRemovedFilesStep` removes tracks whose files no longer exist.
3. `CheckForDuplicatedFilesStep` reports tracks that share a path
   (`DuplicateReason.SAME_HASH`). It also reports tracks that share a file size
   (`DuplicateReason.SAME_TRACK_MBID`).
4. `UpdateLibraryFieldsStep` attaches every directory below the root to the
   media library.
5. `RemoveOrphanedDbEntriesStep` removes some directories and tracks:
   - directories that are missing on disk or unrelated to the root;
   - tracks whose file or directory is gone.
6. `OptimizeStep` passes `PRAGMA optimize;` and `ANALYZE;` to
   `Catalog.execute`.
7. `CompactStep` passes `VACUUM;` to `Catalog.execute`.

The steps are in `lightmusic.scanner.steps` and
`lightmusic.scanner.maintenance`. Before each step the service checks whether
a stop was requested. If so, the scan ends and `scan_aborted` fires. A step
that fails is logged, and the scan goes on.

### Configuration

The configuration is a plain mapping. `build_scanner_settings(options, config)`
merges it with the `ScanOptions` of a scan into `ScannerSettings`.

| Key | Meaning |
| --- | --- |
| `media-library-path` | root directory of the library; without it the steps do nothing |
| `scanner.optimize-enabled` | whether the optimize step runs (default on) |
| `scanner.compact-enabled` | whether the compact step runs (default off) |
| `scanner.metadata.prefer-album-artist-fallback` | use album artists when a track has no artist (default on) |
| `scanner.metadata.artist-delimiters` | delimiters for artist tags (default `;`, `,`, `/`) |
| `scanner.metadata.default-delimiters` | delimiters for genre tags (default `;`, `,`, `/`) |
| `scanner.metadata.artists-to-not-split` | artist names never split on delimiters |

Boolean keys accept `bool` values. They also accept the strings `1`, `true`,
`yes`, `on` and `0`, `false`, `no`, `off`; any other string raises
`ValueError`. List keys accept a string or a sequence of strings.

`ScanOptions.force_optimize` turns the optimize step on.
`ScanOptions.compact` turns the compact step on.

### Reading audio files

The scanner reads tags through a parser that you supply. A parser is a
callable that takes a `Path` and returns an `AudioFileInfo` (in
`lightmusic.scanner.audio`) or `None`. An `AudioFileInfo` holds:

- a `TagReader`;
- a duration in milliseconds;
- an optional `EmbeddedImage`.

Give the parser to `ScannerService(..., parser=...)`. Without a parser, a
track is named after its file and has no tags.

### Scan results

A `ScanStats` (in `lightmusic.scanner.stats`) has these fields:

- `skips`, `scans`, `additions`, `updates`, `deletions` and `failures` count
  files.
- `errors` stores up to 5000 errors; `errors_count` counts every error.
- `duplicates` lists `ScanDuplicate` entries.

`changes_count()` returns additions + deletions + updates.

## File discovery

```python
from lightmusic.scanner.files import discover_files, has_supported_extension

files = discover_files("/srv/music", [".mp3", ".flac"], ".lmsignore")
has_supported_extension("Song.MP3", [".mp3"])  # True
```

`discover_files` does not enter directories that hold a `.lmsignore` file. It
does not follow directory links and skips unreadable directories.
`AudioFileScanner.supported_extensions` lists these extensions:
`.mp3`, `.flac`, `.ogg`, `.m4a`, `.aac`, `.wav`, `.wma`, `.opus`, `.mpc`,
`.ape`.

## Track metadata

```python
from lightmusic.scanner.metadata import (
    DictTagReader, MetadataParameters, TagType, TrackMetadataParser,
)

reader = DictTagReader({TagType.ARTIST: "Simon & Garfunkel; Someone", TagType.DATE: "1970-01-26"})
parser = TrackMetadataParser(MetadataParameters(artists_to_not_split=["Simon & Garfunkel"]))
metadata = parser.parse_track_metadata(reader)
metadata.artists  # ['Simon & Garfunkel', 'Someone']
metadata.date     # '1970'
```

The parser handles these tags:

- Multi-valued tags are read first, then the single tag. Values are split on
  each delimiter, trimmed, and duplicates are dropped.
- A date becomes its first run of four digits. If there is none, the trimmed
  text is kept.
- Track and disc numbers take the first run of digits, so `"3/12"` gives `3`.

## Login throttling

```python
from lightmusic.auth import LoginThrottler

throttler = LoginThrottler(max_entries=1000)
throttler.on_bad_client_attempt("192.0.2.1")
throttler.is_client_throttled("192.0.2.1")  # False until the fifth bad attempt
throttler.on_good_client_attempt("192.0.2.1")
```

- Addresses may be strings or `ipaddress` objects. An invalid string raises
  `ValueError`.
- Entries older than 60 seconds are dropped.
- When more than `max_entries` addresses are tracked, the one with the oldest
  attempt is forgotten.
- A custom `clock` callable can replace `time.monotonic`.

`lightmusic.auth` also provides `AuthError`, `UserNotFoundError` and
`PasswordValidationContext`.

## What the package does not do

- It has no web server, no streaming and no user interface.
- It has no persistent storage. `MemoryCatalog` keeps everything in memory and
  only records the statements passed to `execute`.
- It reads no audio formats itself. Tags, durations and images come from the
  parser you supply.
- It has no password or token service. It provides only the throttler and the
  related types.
- The service does not schedule scans. `next_scheduled_scan` and
  `current_scan_step_stats` stay `None`. The `scan_in_progress` and
  `scan_scheduled` signals exist, but the service never emits them.