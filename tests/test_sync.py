import subprocess
from unittest import mock

import pytest

from uadng.sync import (
    AdbError,
    CorePackage,
    PackageRecord,
    Phone,
    User,
    adb_shell_command,
    apply_pkg_state_commands,
    get_android_sdk,
    get_device_brand,
    get_device_model,
    get_devices_list,
    initial_load,
    is_protected_user,
    list_users_parsed,
    parse_user_ids,
    request_builder,
    supports_multi_user,
    user_flag,
)
from uadng.uad_lists import PackageState

PKG = "com.example.app"


def _done(stdout=b"", returncode=0, stderr=b""):
    return subprocess.CompletedProcess(
        args=[], returncode=returncode, stdout=stdout, stderr=stderr
    )


def _commands(current, wanted, sdk, user=User(id=0)):
    return apply_pkg_state_commands(
        CorePackage(PKG, current), wanted, user, Phone(android_sdk=sdk)
    )


def test_user_flag_none_is_empty():
    assert user_flag(None) == ""


def test_user_flag_with_user():
    assert user_flag(User(id=0)) == " --user 0"


def test_request_builder_without_user():
    assert request_builder(["pm enable"], PKG, None) == ["pm enable com.example.app"]


def test_request_builder_keeps_order_and_user():
    out = request_builder(["a", "b"], PKG, User(id=7))
    assert [line.split(" ")[0] for line in out] == ["a", "b"]
    assert all(line.endswith(f"{user_flag(User(id=7))} {PKG}") for line in out)


def test_uninstall_modern_device():
    assert _commands(PackageState.ENABLED, PackageState.UNINSTALLED, 30) == [
        "pm uninstall --user 0 com.example.app"
    ]


def test_disable_modern_device_order():
    out = _commands(PackageState.ENABLED, PackageState.DISABLED, 30)
    assert [c.rsplit(" --user", 1)[0] for c in out] == [
        "pm disable-user",
        "am force-stop",
        "pm clear",
    ]


def test_uninstall_lollipop_hides():
    out = _commands(PackageState.DISABLED, PackageState.UNINSTALLED, 22)
    assert out[0].startswith("pm hide")
    assert out[1].startswith("pm clear")


def test_uninstall_kitkat_blocks_without_user_flag():
    out = _commands(PackageState.ENABLED, PackageState.UNINSTALLED, 19)
    assert out[0].startswith("pm block")
    assert all("--user" not in c for c in out)


def test_restore_uninstalled_by_sdk():
    assert _commands(PackageState.UNINSTALLED, PackageState.ENABLED, 23)[0].startswith(
        "cmd package install-existing"
    )
    assert _commands(PackageState.UNINSTALLED, PackageState.ENABLED, 21)[0].startswith(
        "pm unhide"
    )
    kitkat = _commands(PackageState.UNINSTALLED, PackageState.ENABLED, 20)
    assert kitkat[0].startswith("pm unblock")
    assert len(kitkat) == 2


def test_enable_disabled_package():
    assert _commands(PackageState.DISABLED, PackageState.ENABLED, 30)[0].startswith(
        "pm enable"
    )


def test_restore_on_ancient_sdk_rejected():
    with pytest.raises(ValueError):
        _commands(PackageState.UNINSTALLED, PackageState.ENABLED, 18)


@pytest.mark.parametrize(
    "current, wanted, sdk",
    [
        (PackageState.ENABLED, PackageState.DISABLED, 22),
        (PackageState.ENABLED, PackageState.ENABLED, 30),
        (PackageState.UNINSTALLED, PackageState.UNINSTALLED, 30),
        (PackageState.ENABLED, PackageState.ALL, 30),
    ],
)
def test_no_commands_needed(current, wanted, sdk):
    assert _commands(current, wanted, sdk) == []


def test_supports_multi_user_boundary():
    assert supports_multi_user(Phone(android_sdk=21))
    assert not supports_multi_user(Phone(android_sdk=20))


def test_phone_and_user_display():
    assert str(Phone(model="Pixel")) == "Pixel"
    assert str(User(id=3)).endswith("3")
    assert Phone().model == "fetching devices..."


def test_package_record_to_core():
    record = PackageRecord(PKG, PackageState.DISABLED, selected=True)
    assert record.to_core() == CorePackage(PKG, PackageState.DISABLED)


def test_parse_user_ids():
    out = "Users:\n\tUserInfo{0:Owner:13} running\n\tUserInfo{10:Work:30}"
    assert parse_user_ids(out) == [0, 10]


def test_adb_shell_command_success():
    with mock.patch("subprocess.run", return_value=_done(b"Success\n")) as run:
        assert adb_shell_command("SERIAL-1", "pm enable x.y", "Recommended") == "Success"
    assert run.call_args.args[0] == ["adb", "-s", "SERIAL-1", "shell", "pm enable x.y"]


def test_adb_shell_command_failure_in_output():
    with mock.patch("subprocess.run", return_value=_done(b"Failure [x]")):
        with pytest.raises(AdbError, match=r"\[lbl\] pm hide x\.y"):
            adb_shell_command("", "pm hide x.y", "lbl")


def test_adb_shell_command_not_installed_keeps_raw_message():
    msg = b"Failure [not installed for 10]"
    with mock.patch("subprocess.run", return_value=_done(msg, returncode=1)):
        with pytest.raises(AdbError) as info:
            adb_shell_command("", "pm uninstall x.y", "lbl")
    assert str(info.value) == msg.decode()


def test_adb_shell_command_missing_adb():
    with mock.patch("subprocess.run", side_effect=FileNotFoundError()):
        with pytest.raises(AdbError, match="likely not found"):
            adb_shell_command("", "pm enable x.y", "lbl")


def test_getprop_helpers():
    with mock.patch("subprocess.run", return_value=_done(b"  Acme  \n")):
        assert get_device_brand("S") == "Acme"
    with mock.patch("subprocess.run", return_value=_done(b"33\n")):
        assert get_android_sdk("S") == 33
    with mock.patch("subprocess.run", return_value=_done(b"oops")):
        with pytest.raises(ValueError):
            get_android_sdk("S")
    with mock.patch("subprocess.run", return_value=_done(b"", 1, b"x")):
        assert get_android_sdk("S") == 0
        assert get_device_brand("S") == ""


def test_device_model_no_devices():
    err = b"adb: no devices/emulators found"
    with mock.patch("subprocess.run", return_value=_done(b"", 1, err)):
        assert get_device_model("") == "no devices/emulators found"


def _fake_device(args, **kwargs):
    if args[-1] == "devices":
        return _done(b"List of devices attached\nFAKE-SERIAL-0001\tdevice\n")
    if "getprop" in args:
        values = {
            "ro.product.brand": b"Acme",
            "ro.product.model": b"Phone X",
            "ro.build.version.sdk": b"30",
        }
        return _done(values[args[-1]])
    if args[-2:] == ["list", "users"]:
        return _done(b"Users:\n\tUserInfo{0:Owner:13}\n\tUserInfo{10:Work:30}")
    if "--user" in args:
        uid = args[args.index("--user") + 1]
        if uid == "0":
            return _done(b"package:com.example.app")
        return _done(b"", 1, b"Error: no access")
    raise AssertionError(args)


def test_users_and_protection():
    with mock.patch("subprocess.run", side_effect=_fake_device):
        assert not is_protected_user(0, "FAKE-SERIAL-0001")
        assert is_protected_user(10, "FAKE-SERIAL-0001")
        users = list_users_parsed("FAKE-SERIAL-0001")
    assert users == [User(0, 0, False), User(10, 1, True)]


def test_get_devices_list():
    with mock.patch("subprocess.run", side_effect=_fake_device):
        phones = get_devices_list(attempts=1, delay=0)
    assert len(phones) == 1
    phone = phones[0]
    assert phone.adb_id == "FAKE-SERIAL-0001"
    assert phone.model == "Acme Phone X"
    assert phone.android_sdk == 30
    assert [u.id for u in phone.user_list] == [0, 10]


def test_get_devices_list_gives_up_on_unauthorized():
    out = b"List of devices attached\nFAKE-SERIAL-0002\tunauthorized\n"
    with mock.patch("subprocess.run", return_value=_done(out)) as run:
        assert get_devices_list(attempts=3, delay=0) == []
    assert run.call_count == 3


def test_initial_load():
    with mock.patch("subprocess.run", side_effect=FileNotFoundError()):
        assert initial_load() is False
    with mock.patch("subprocess.run", return_value=_done(b"List of devices attached")):
        assert initial_load() is True