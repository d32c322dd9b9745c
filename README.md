# layerbuild

`layerbuild` is a library that turns a Dockerfile into an image configuration.
It can:

- parse a Dockerfile into stages and instructions,
- resolve `COPY --from=<name>` references to stage indices,
- pick the target stage and tell which stages later stages depend on,
- apply instructions (`CMD`, `ENTRYPOINT`, `ENV`, `EXPOSE`, `LABEL`, `USER`,
  `WORKDIR`, `VOLUME`, `ARG`, `SHELL`, `STOPSIGNAL`, `ONBUILD`, `HEALTHCHECK`,
  `RUN`) to an image configuration, with build arguments and `$VAR` / `${VAR}`
  substitution,
- locate the build context: a local directory (`dir://`) or a bucket
  (`gs://`, `s3://`).

It needs only the standard library and Python 3.10 or later.

## Installing

```
pip install layerbuild
```

To run the tests:

```
pip install "layerbuild[test]"
pytest
```

## Parsing a Dockerfile

```python
from layerbuild import dockerfile

text = """
FROM scratch
RUN echo hi > /hi

FROM scratch AS second
COPY --from=0 /hi /hi2

FROM scratch
COPY --from=second /hi2 /hi3
"""

stages, meta_args = dockerfile.parse(text)
dockerfile.resolve_stages(stages)                  # "--from=second" becomes "1"
final = dockerfile.target_stage(stages, "second")  # -> 1
needed = dockerfile.save_stage(0, stages)          # -> True
```

`target_stage` raises `ValueError` when the named stage does not exist; an
empty target means the last stage. `dockerfile.stages(opts)` reads the file
named by a `KanikoOptions.dockerfile_path` (a local path or an `http(s)://`
URL) and returns `KanikoStage` objects up to the target stage.

## Applying instructions

`layerbuild.dispatch.get_command(instruction, build_context)` returns the
command for a parsed instruction (or `None` for `MAINTAINER`, which is
skipped). A command updates an `ImageConfig` in place through
`execute_command(config, build_args)`:

```python
from layerbuild import dockerfile
from layerbuild.buildargs import BuildArgs
from layerbuild.dispatch import get_command
from layerbuild.imageconfig import ImageConfig

stages, _ = dockerfile.parse("""
FROM scratch
ARG version
ENV APP=/app
LABEL version=$version
EXPOSE 8080
CMD ["serve"]
""")

build_args = BuildArgs.from_strings(["version=1.2"])
config = ImageConfig()

for instruction in stages[0].commands:
    command = get_command(instruction, "/workspace")
    if command is not None:
        command.execute_command(config, build_args)

# config.env == ["APP=/app"]
# config.labels == {"version": "1.2"}
# config.exposed_ports == {"8080/tcp"}
# config.cmd == ["serve"]
```

Commands also report what they touch: `files_to_snapshot()`,
`files_used_from_context(config, build_args)`, `metadata_only()`,
`requires_unpacked_fs()` and `should_cache_output()`.

`CMD`, `ENTRYPOINT`, `ENV`, `LABEL`, `EXPOSE` and the other metadata
instructions only change the configuration. `RUN` starts its command as a
child process, `USER` checks the user and group against the system's user
database, and `WORKDIR` and `VOLUME` create missing directories, so those are
meant to run inside the container being built.

## Build context

```python
from layerbuild.buildcontext import get_build_context

context = get_build_context("dir:///workspace")
path = context.unpack_tar_from_build_context()   # -> "/workspace"
```

`gs://bucket/item` and `s3://bucket/item` download the tarball and unpack it
into `/kaniko/buildcontext/`. An unknown prefix raises `UnknownContextError`
naming the supported ones.

## Integration helpers

`layerbuild.integration` builds test Dockerfiles with both `docker build` and
an executor image run under `docker run`, and copies files to and from a
bucket with `gsutil`. It needs those tools on the `PATH`.

## What it does not do

- There is no command-line program; everything is used as a library.
- `COPY` and `ADD` are parsed, but `get_command` raises
  `UnsupportedCommandError` for them: files are not copied from the build
  context.
- Filesystem snapshots, layer caching, pushing images to a registry and
  listing release notes are not provided.