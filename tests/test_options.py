from datetime import timedelta

from layerbuild.options import KanikoOptions, MultiArg, WarmerOptions


def test_set_appends_in_order():
    arg = MultiArg()
    arg.set("first")
    arg.set("second")
    assert list(arg) == ["first", "second"]


def test_contains():
    arg = MultiArg(["registry.local", "other"])
    assert arg.contains("other")
    assert not arg.contains("missing")


def test_str_joins_with_comma():
    arg = MultiArg(["a", "b", "c"])
    assert str(arg) == "a,b,c"


def test_str_of_empty_is_empty():
    assert str(MultiArg()) == ""


def test_kaniko_options_have_independent_lists():
    first = KanikoOptions()
    second = KanikoOptions()
    first.destinations.set("image:tag")
    assert second.destinations == []
    assert first.destinations.contains("image:tag")


def test_kaniko_options_defaults():
    opts = KanikoOptions()
    assert opts.cache_ttl == timedelta(0)
    assert opts.no_push is False
    assert opts.cache_repo == ""


def test_warmer_options_collect_images():
    opts = WarmerOptions(cache_dir="/cache")
    opts.images.set("debian:9")
    assert opts.images == ["debian:9"]
    assert opts.cache_dir == "/cache"