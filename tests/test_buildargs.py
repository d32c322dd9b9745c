from types import SimpleNamespace

from layerbuild.buildargs import BuildArgs


def _set_up_build_args():
    build_args = BuildArgs.from_strings(["buildArg1=foo", "buildArg2=foo2"])
    build_args.add_arg("buildArg1", None)
    build_args.add_arg("buildArg2", "default")
    return build_args


def test_replacement_envs_appends_allowed_args_after_env():
    build_args = _set_up_build_args()
    envs = ["path=/usr/", "home=/root"]
    assert build_args.replacement_envs(envs) == [
        "path=/usr/",
        "home=/root",
        "buildArg1=foo",
        "buildArg2=foo2",
    ]


def test_filter_allowed_skips_keys_already_in_env():
    build_args = _set_up_build_args()
    assert build_args.filter_allowed(["buildArg1=other"]) == ["buildArg2=foo2"]


def test_undeclared_option_is_not_allowed():
    build_args = BuildArgs.from_strings(["undeclared=value"])
    assert build_args.filter_allowed([]) == []


def test_default_used_without_option():
    build_args = BuildArgs.from_strings([])
    build_args.add_arg("name", "fallback")
    assert build_args.filter_allowed([]) == ["name=fallback"]


def test_declared_without_value_is_omitted():
    build_args = BuildArgs.from_strings(["name"])
    build_args.add_arg("name", None)
    assert build_args.filter_allowed([]) == []


def test_meta_arg_supplies_missing_default():
    build_args = BuildArgs.from_strings(["name"])
    build_args.add_meta_arg("name", "meta")
    build_args.add_arg("name", None)
    assert build_args.filter_allowed([]) == ["name=meta"]


def test_builtin_proxy_args_are_allowed_from_options():
    build_args = BuildArgs.from_strings(["HTTP_PROXY=proxy.local"])
    assert build_args.filter_allowed([]) == ["HTTP_PROXY=proxy.local"]


def test_get_all_meta_from_arg_instructions():
    build_args = BuildArgs.from_strings(["image=override"])
    build_args.add_meta_args(
        [SimpleNamespace(key="image", value="scratch"), SimpleNamespace(key="tag", value="latest")]
    )
    assert build_args.get_all_meta() == {"image": "override", "tag": "latest"}


def test_clone_is_independent():
    build_args = _set_up_build_args()
    clone = build_args.clone()
    clone.add_arg("extra", "value")
    assert "extra=value" in clone.filter_allowed([])
    assert "extra=value" not in build_args.filter_allowed([])