# tests/test_app.py
"""
Tests for the session: identity validation, connecting, ownership of the
native connection and teardown.
"""
import asyncio
import gc
import logging
from pathlib import Path

import pytest

from safe_app import (
    AccountInfo,
    App,
    AppInfo,
    ConnectionSlot,
    ConnectionState,
    InitOptions,
    LibraryLoadError,
    LifecycleError,
    NativeCallError,
    NetworkState,
    ValidationError,
    initialise_app,
)
from safe_app.config import LIB_PATH_ENV, USE_MOCK_ENV, lib_filename
from safe_app.exceptions import ProtocolViolationError
from safe_app.lowlevel import NativeLibrary
from safe_app._internal import error_const

from conftest import APP_INFO, AUTH_URI


@pytest.fixture(autouse=True)
def reset_log_file_path(monkeypatch):
    monkeypatch.setattr(App, "log_file_path", None)


@pytest.mark.parametrize("info", [
    AppInfo(id="", name="n", vendor="v"),
    AppInfo(id="id", name="   ", vendor="v"),
    AppInfo(id="id", name="n", vendor=None),  # type: ignore[arg-type]
])
def test_malformed_app_info(library, info):
    with pytest.raises(ValidationError) as exc:
        App(info, library=library)
    assert exc.value.code == error_const.MALFORMED_APP_INFO.code


def test_app_info_is_stripped(library):
    app = App(AppInfo(id=" net.test ", name=" Name\n", vendor="\tVendor", scope="s"), library=library)
    assert app.app_info == AppInfo(id="net.test", name="Name", vendor="Vendor", scope="s")
    assert app.state is ConnectionState.INITIALIZING
    assert app.is_net_state_init()


def test_connection_before_connect(unconnected_app):
    with pytest.raises(LifecycleError) as exc:
        unconnected_app.connection
    assert exc.value.code == error_const.SETUP_INCOMPLETE.code


def test_library_load_failure(tmp_path):
    with pytest.raises(LibraryLoadError) as exc:
        App(APP_INFO, options=InitOptions(lib_path=str(tmp_path)))
    assert exc.value.code == error_const.FAILED_TO_LOAD_LIB.code


@pytest.mark.asyncio
async def test_connect_unregistered(fake, library):
    states = []
    app = App(APP_INFO, states.append, library=library)
    assert await app.connect_unregistered(AUTH_URI) is app

    assert app.state is ConnectionState.CONNECTED
    assert app.is_net_state_connected()
    assert states == [NetworkState.CONNECTED]
    assert app.connection == 0x1000
    (call,) = fake.calls_to("app_unregistered")
    assert bytes(call[0])[:call[1]] == AUTH_URI


@pytest.mark.asyncio
async def test_connect_unregistered_requires_uri(fake, unconnected_app):
    with pytest.raises(ValidationError) as exc:
        await unconnected_app.connect_unregistered(b"")
    assert exc.value.code == error_const.MISSING_AUTH_URI.code
    assert fake.calls == []


@pytest.mark.asyncio
async def test_connect_registered_passes_auth_through(fake, unconnected_app):
    await unconnected_app.connect_registered(0xDEAD)
    (call,) = fake.calls_to("app_registered")
    assert call[:2] == (b"net.maidsafe.test", 0xDEAD)
    assert unconnected_app.state is ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_connect_failure_leaves_session_unconnected(fake, unconnected_app):
    fake.errors["app_unregistered"] = (-200, b"denied")
    with pytest.raises(NativeCallError) as exc:
        await unconnected_app.connect_unregistered(AUTH_URI)
    assert exc.value.name == "ERR_AUTH_DENIED"
    assert unconnected_app.state is ConnectionState.INITIALIZING
    with pytest.raises(LifecycleError):
        unconnected_app.connection


@pytest.mark.asyncio
async def test_replacing_connection_frees_previous_first(fake, app):
    first = app.connection
    visible_during_free = []
    original_sync = fake._sync

    def spy(name, args):
        if name == "app_free":
            visible_during_free.append(app._slot.pointer)
        return original_sync(name, args)

    fake._sync = spy
    await app.connect_unregistered(AUTH_URI)

    assert fake.freed_connections == [first]
    assert visible_during_free == [None]
    assert app.connection != first


@pytest.mark.asyncio
async def test_replacing_connection_refuses_with_live_handles(fake, app):
    key = await app.crypto.get_app_pub_sign_key()
    first = app.connection

    with pytest.raises(LifecycleError) as exc:
        await app.connect_unregistered(AUTH_URI)
    assert exc.value.code == error_const.OUTSTANDING_HANDLES.code
    assert len(fake.calls_to("app_unregistered")) == 1
    assert app.connection == first
    assert fake.freed_connections == []

    await key.force_release()
    await app.connect_unregistered(AUTH_URI)
    assert fake.freed_connections == [first]


@pytest.mark.asyncio
async def test_handle_created_while_connecting_keeps_the_old_connection(fake, app):
    first = app.connection
    fake.mode = "manual"
    connecting = asyncio.ensure_future(app.connect_unregistered(AUTH_URI))
    await asyncio.sleep(0)
    fetching = asyncio.ensure_future(app.crypto.get_app_pub_sign_key())
    await asyncio.sleep(0)
    fire_connect, fire_key = fake.deferred

    fire_key()
    key = await fetching
    fire_connect()
    with pytest.raises(LifecycleError) as exc:
        await connecting
    assert exc.value.code == error_const.OUTSTANDING_HANDLES.code

    # the new connection is discarded
    assert app.connection == first
    assert fake.freed_connections == [first + 1]
    assert isinstance(key.ref, int)
    fake.mode = "inline"


@pytest.mark.asyncio
async def test_handle_from_a_replaced_connection_never_reaches_native(fake, app, caplog):
    first = app.connection
    fake.mode = "manual"
    fetching = asyncio.ensure_future(app.crypto.get_app_pub_sign_key())
    await asyncio.sleep(0)
    connecting = asyncio.ensure_future(app.connect_unregistered(AUTH_URI))
    await asyncio.sleep(0)
    fire_key, fire_connect = fake.deferred

    fire_connect()
    await connecting
    assert fake.freed_connections == [first]

    fire_key()
    key = await fetching
    (call,) = fake.calls_to("app_pub_sign_key")
    assert call[0] == first

    with pytest.raises(LifecycleError) as exc:
        key.ref
    assert exc.value.code == error_const.CONNECTION_FREED.code
    with pytest.raises(LifecycleError):
        key.get_raw()
    with caplog.at_level(logging.WARNING, logger="safe_app.handles"):
        assert key.force_release() is None
    assert "connection is already freed" in caplog.text
    assert fake.calls_to("sign_key_get") == []
    assert fake.calls_to("sign_key_free") == []
    assert app.live_handle_count == 0
    fake.mode = "inline"


def test_connection_slot_frees_each_pointer_once(fake, library):
    slot = ConnectionSlot(library)
    slot.adopt(1)
    slot.adopt(2)
    slot.free()
    slot.free()
    assert fake.freed_connections == [1, 2]

    with pytest.raises(LifecycleError) as exc:
        slot.adopt(3)
    assert exc.value.code == error_const.CONNECTION_FREED.code
    assert fake.freed_connections == [1, 2, 3]


@pytest.mark.asyncio
async def test_network_state_notifications(fake, library):
    states = []
    app = App(APP_INFO, states.append, library=library)
    await app.connect_unregistered(AUTH_URI)
    key = await app.crypto.get_app_pub_sign_key()

    fake.notifiers[-1](None)
    await asyncio.sleep(0)
    assert app.state is ConnectionState.DISCONNECTED
    assert app.is_net_state_disconnected()
    assert isinstance(key.ref, int)

    await app.reconnect()
    assert app.state is ConnectionState.CONNECTED
    assert states == [NetworkState.CONNECTED, NetworkState.DISCONNECTED, NetworkState.CONNECTED]
    await app.close()


@pytest.mark.asyncio
async def test_free_refuses_with_live_handles(fake, app):
    key = await app.crypto.get_app_pub_sign_key()
    with pytest.raises(LifecycleError) as exc:
        app.free()
    assert exc.value.code == error_const.OUTSTANDING_HANDLES.code
    assert app.connection_alive
    assert fake.freed_connections == []

    await key.force_release()
    app.free()
    app.free()
    assert app.state is ConnectionState.FREED
    assert len(fake.freed_connections) == 1
    assert not app.library.closed
    with pytest.raises(LifecycleError) as exc:
        app.connection
    assert exc.value.code == error_const.CONNECTION_FREED.code


@pytest.mark.asyncio
async def test_close_releases_handles_before_the_connection(fake, app):
    pair = await app.crypto.generate_enc_key_pair()
    cipher = await app.cipher_opt.new_asymmetric(pair.pub_enc_key)
    assert app.live_handle_count == 3

    await app.close()

    names = [name for name, _ in fake.calls]
    assert names.index("app_free") > max(
        names.index("enc_pub_key_free"),
        names.index("enc_secret_key_free"),
        names.index("cipher_opt_free"),
    )
    assert cipher.released and pair.pub_enc_key.released and pair.sec_enc_key.released
    assert app.state is ConnectionState.FREED


@pytest.mark.asyncio
async def test_async_with_closes_the_session(fake, library):
    async with App(APP_INFO, library=library) as app:
        await app.connect_unregistered(AUTH_URI)
        await app.crypto.get_app_pub_enc_key()
    assert not app.connection_alive
    assert [name for name, _ in fake.freed] == ["enc_pub_key_free"]
    assert len(fake.freed_connections) == 1


@pytest.mark.asyncio
async def test_garbage_collected_session_frees_its_connection(fake, library):
    app = App(APP_INFO, library=library)
    await app.connect_unregistered(AUTH_URI)
    pointer = app.connection

    del app
    gc.collect()
    assert fake.freed_connections == [pointer]
    assert not library.closed


@pytest.mark.asyncio
async def test_freeing_one_session_leaves_a_shared_library_open(fake, library):
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(lambda _loop, context: None)
    first = await App(APP_INFO, library=library).connect_unregistered(AUTH_URI)
    second = await App(APP_INFO, library=library).connect_unregistered(AUTH_URI)

    fake.mode = "manual"
    nonce = asyncio.ensure_future(second.crypto.generate_nonce())
    own_key = asyncio.ensure_future(first.crypto.get_app_pub_sign_key())
    await asyncio.sleep(0)

    first.free()
    assert not library.closed
    with pytest.raises(ProtocolViolationError, match="never invoked a callback"):
        await own_key
    assert not nonce.done()

    fake.fire_all()
    assert await nonce == bytes(range(24))
    fake.mode = "inline"
    assert await second.get_account_info() == AccountInfo(mutations_done=5, mutations_available=995)
    await second.close()
    assert fake.freed_connections == [0x1000, 0x1001]


@pytest.mark.asyncio
async def test_session_closes_the_library_it_loaded(fake, library, monkeypatch):
    monkeypatch.setattr(NativeLibrary, "load", classmethod(lambda cls, path, functions=None: library))
    app = App(APP_INFO)
    assert app.owns_library
    await app.connect_unregistered(AUTH_URI)

    app.free()
    assert library.closed
    assert len(fake.freed_connections) == 1


def test_state_before_initialisation():
    assert App.__new__(App).state is ConnectionState.UNINITIALIZED


@pytest.mark.asyncio
async def test_session_operations(fake, app):
    fake.results["app_container_name"] = lambda args: (b"apps/" + args[0],)

    info = await app.get_account_info()
    assert (info.mutations_done, info.mutations_available) == (5, 995)
    assert await app.get_own_container_name() == "apps/net.maidsafe.test"
    await app.clear_object_cache()
    assert fake.calls_to("app_reset_object_cache")[0][0] == app.connection
    assert app.is_mock_build() is True


@pytest.mark.asyncio
async def test_init_logging(fake, app):
    fake.results["app_output_log_path"] = lambda args: (b"/var/log/" + args[0],)

    assert app.default_log_filename() == "Test_App.MaidSafe.log"
    assert await app.init_logging() == "/var/log/Test_App.MaidSafe.log"
    assert App.log_file_path == "/var/log/Test_App.MaidSafe.log"

    # native logging is process-wide
    await app.init_logging()
    assert len(fake.calls_to("app_init_logging")) == 1
    assert await app.log_path("other.log") == "/var/log/other.log"


@pytest.mark.asyncio
async def test_init_logging_failure_is_logged(fake, app, caplog):
    fake.errors["app_init_logging"] = (-1013, b"io error")
    with caplog.at_level(logging.ERROR, logger="safe_app.app"):
        assert await app.init_logging() is None
    assert "Logger initialisation failed" in caplog.text
    assert App.log_file_path is None


@pytest.mark.asyncio
async def test_initialise_app(fake, library):
    app = await initialise_app(APP_INFO, options=InitOptions(config_path="/etc/safe"), library=library)
    assert fake.calls_to("app_set_additional_search_path")[0][0] == b"/etc/safe"
    assert len(fake.calls_to("app_init_logging")) == 1
    app.free()


@pytest.mark.asyncio
async def test_search_path_failure_is_logged(fake, unconnected_app, caplog):
    fake.errors["app_set_additional_search_path"] = (-1013, b"io error")
    with caplog.at_level(logging.ERROR, logger="safe_app.app"):
        await unconnected_app.set_search_path("/missing")
    assert "Failed to set additional config search path" in caplog.text


def test_library_path_resolution(monkeypatch, tmp_path):
    monkeypatch.delenv(USE_MOCK_ENV, raising=False)
    monkeypatch.setenv(LIB_PATH_ENV, str(tmp_path))

    assert InitOptions().library_path() == str(tmp_path / "prod" / lib_filename())
    assert InitOptions(force_use_mock=True).library_path() == str(tmp_path / "mock" / lib_filename())

    monkeypatch.setenv(USE_MOCK_ENV, "true")
    assert InitOptions(lib_path="/opt/safe").library_path() == str(Path("/opt/safe") / "mock" / lib_filename())

    assert lib_filename("win32") == "safe_app.dll"
    assert lib_filename("darwin") == "libsafe_app.dylib"
    assert lib_filename("linux") == "libsafe_app.so"
