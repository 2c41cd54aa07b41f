from __future__ import annotations

import pytest

from fcctl.core.errors import CodecResolutionError
from fcctl.transports import registry


class FakeEntryPoint:
    def __init__(self, name: str, target: object = None, error: Exception | None = None) -> None:
        self.name = name
        self.value = f"fake_codecs:{name}"
        self._target = target
        self._error = error

    def load(self) -> object:
        if self._error is not None:
            raise self._error
        return self._target


def _install(monkeypatch: pytest.MonkeyPatch, *eps: FakeEntryPoint) -> None:
    def fake_entry_points(*, group: str) -> list[FakeEntryPoint]:
        assert group == "fcctl.codecs"
        return list(eps)

    monkeypatch.setattr(registry, "entry_points", fake_entry_points)


def _factory(port: str, baud_rate: int) -> object:
    return object()


def test_no_codec_installed(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch)
    with pytest.raises(CodecResolutionError, match="No frame codec installed"):
        registry.load_codec_factory()


def test_single_codec_is_default(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, FakeEntryPoint("msp-v1", _factory))
    assert registry.load_codec_factory() is _factory
    assert registry.available_codecs() == ("msp-v1",)


def test_multiple_codecs_need_a_name(monkeypatch: pytest.MonkeyPatch) -> None:
    other = lambda port, baud_rate: object()  # noqa: E731
    _install(monkeypatch, FakeEntryPoint("msp-v1", _factory), FakeEntryPoint("msp-v2", other))

    with pytest.raises(CodecResolutionError, match="msp-v1, msp-v2"):
        registry.load_codec_factory()
    assert registry.load_codec_factory("msp-v2") is other


def test_unknown_codec_name(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, FakeEntryPoint("msp-v1", _factory))
    with pytest.raises(CodecResolutionError, match="Unknown codec 'crsf'"):
        registry.load_codec_factory("crsf")


def test_broken_codec_package(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, FakeEntryPoint("msp-v1", error=ImportError("no module named serial")))
    with pytest.raises(CodecResolutionError, match="no module named serial"):
        registry.load_codec_factory()
