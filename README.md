# uadng

A Python library for removing unwanted system apps from Android devices
through the Android Debug Bridge (`adb`). It finds attached devices,
lists their system packages together with the community-maintained
debloat lists, builds the `pm` commands suited to the device's Android
version, and keeps settings and backups of package states.

`adb` must be installed and on your `PATH`.

## Installation

```
pip install .
```

## Working with ADB (`uadng.adb`)

```python
from uadng.adb import ACommand, PmListPacksFlag, PackageId

devices = ACommand().devices()          # [(serial, status), ...]
model = ACommand().shell("").getprop("ro.product.model")
enabled = ACommand().shell("").pm().list_packages_sys(PmListPacksFlag.ONLY_ENABLED, None)
users = ACommand().shell("").pm().list_users()   # raw text

PackageId.is_valid("com.example.app")   # True
PackageId("nodots")                     # raises ValueError
```

An empty serial lets `adb` pick the device. When `adb` cannot be started
or reports a failure, `AdbCommandError` is raised.

## Devices and package states (`uadng.sync`)

```python
from uadng.sync import get_devices_list, apply_pkg_state_commands, adb_shell_command, CorePackage
from uadng.uad_lists import PackageState

phones = get_devices_list()             # waits for an authorized device, retrying
phone = phones[0]
user = phone.user_list[0]

commands = apply_pkg_state_commands(
    CorePackage("com.example.app", PackageState.ENABLED),
    PackageState.UNINSTALLED,
    user,
    phone,
)
# on Android 6.0 or later: ["pm uninstall --user 0 com.example.app"]

for command in commands:
    adb_shell_command(phone.adb_id, command, "Recommended")
```

`adb_shell_command` raises `AdbError` when the command fails, or when its
output mentions "Error" or "Failure". `get_devices_list(attempts, delay)`
controls how long to wait for a device; `initial_load()` tells whether
`adb` can list devices at all.

## Debloat lists (`uadng.uad_lists`)

`load_debloat_lists(remote, cache_dir)` returns the lists keyed by package
name and a flag telling whether every download attempt succeeded. A
successful download is cached as `uad_lists.json` in `cache_dir`;
otherwise the cached copy is read with `get_local_lists(cache_dir)`.
`parse_lists(text)` parses a list document into `Package` entries, with
their `UadList`, `Removal` category and description.

`uadng.utils.fetch_packages(uad_lists, device_serial, user_id)` combines the
device's system packages with these entries and returns `PackageRecord`s
sorted by name, ignoring case. `build_package_records` does the same from
package names you already have.

## Settings (`uadng.config`)

`load_configuration_file(config_file, cache_dir)` reads a TOML file with
general options (`theme`, `expert_mode`, `backup_folder`) and per-device
settings; an unreadable or invalid file is replaced with defaults.
`save_changes(config_file, general, device, cache_dir)` stores new settings,
replacing those of a device already present.

## Backups (`uadng.save`)

- `backup_phone(users, device_id, phone_packages, backup_folder)` writes the
  state of every package per user to
  `<backup_folder>/<device_id>/<YYYY-MM-DD_HH-MM-SS>.json` and returns the path.
- `list_available_backups(directory)` and `list_available_backup_user(backup)`
  list backup files and the users they hold.
- `restore_backup(selected_device, packages, backup, selected_user)` returns
  `BackupPackage` entries with the commands that bring the device back to the
  backed-up states; it raises `ValueError` if a user or package is missing.

## Exports (`uadng.utils`)

`export_selection(packages, destination)` writes the names of selected
packages, one per line. `export_packages(user, phone_packages, directory)`
writes a CSV of the user's uninstalled packages and their descriptions,
named `uninstalled_packages_<YYYYMMDD>.csv`.

## Updates (`uadng.update`)

`get_latest_release()` asks for the latest published release and returns it
when it is newer than this version. `download_update_to_temp_file(bin_name(),
release)` downloads the matching binary and swaps it in for the current one.
Failures raise `UpdateError`.

## Themes (`uadng.theme`)

`Theme` provides the colour palettes `AUTO`, `LUPIN`, `DARK` and `LIGHT`;
`Theme.AUTO.palette()` follows the scheme found by `detect_color_scheme()`.

## What this package does not do

- It has no graphical interface and no command-line program; it is a library
  to be called from your own code.
- It does not ship a copy of the debloat lists. Without a download or a
  cached `uad_lists.json`, the lists are empty and every package is shown as
  unlisted.
- `restore_backup` and `apply_pkg_state_commands` only build commands; run
  them with `adb_shell_command`.

## Running the tests

```
pip install .[test]
pytest
```