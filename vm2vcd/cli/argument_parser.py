# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/cli/argument_parser.py
#
# Examples:
#
#   vm2vcd --config site.yaml --batch wave1.csv
#   vm2vcd --config site.yaml --config wave2.yaml --dry-run
#   vm2vcd --config site.yaml --batch wave1.csv --report out/wave1.csv -vv
#
from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, Optional, Sequence, Tuple

from .. import __version__
from ..config.config_loader import Config
from ..core.exceptions import MetadataValueError
from ..core.logger import Log, c
from ..core.utils import U
from ..migration.models import MetadataType, Visibility
from ..migration.tagging import MetadataTagger
from ..migration.validator import NetworkMode

YAML_EXAMPLE = """\
source:
  host: vc-legacy.example.com
  user: administrator@vsphere.local
  password_env: SOURCE_VC_PASSWORD
  datacenter: DC-Legacy
destination:
  host: vc-cloud.example.com
  user: administrator@vsphere.local
  password_env: DEST_VC_PASSWORD
  datacenter: DC-Cloud
vcd:
  url: https://vcd.example.com
  user: administrator
  org: System
  password_env: VCD_PASSWORD
  vim_server: vc-cloud
clusters:
  windows: windows_cluster
  linux: linux_cluster
  sql: sql_cluster
network_mode: multi
poll_interval_s: 5
tag_category: Backup
batch: vms.csv
report: migration-report.csv
"""

CSV_EXAMPLE = """\
vm_name,os_type,datastore_cluster_name,customer_name,customer_id
web01,linux,DSC-Gold,acme,100
db02,sql,DSC-Gold,acme,100
"""


class HelpFormatter(argparse.RawDescriptionHelpFormatter, argparse.ArgumentDefaultsHelpFormatter):
    """Combines raw description formatting with default value display in help."""


def _build_epilog() -> str:
    return (
        c("YAML example:\n", "cyan", ["bold"])
        + c(YAML_EXAMPLE, "cyan")
        + "\n"
        + c("Batch CSV example:\n", "cyan", ["bold"])
        + c(CSV_EXAMPLE, "cyan")
    )


def _add_global_config_logging(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML/JSON config file (repeatable; later overrides earlier).",
    )
    p.add_argument("--dump-config", action="store_true", help="Print merged config and exit.")
    p.add_argument("--dump-args", action="store_true", help="Print final parsed args and exit.")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbosity: -v, -vv, -vvv (trace)")
    p.add_argument("-q", "--quiet", action="count", default=0, help="Less output: -q warnings, -qq errors")
    p.add_argument("--log-file", dest="log_file", default=None, help="Write logs to file.")
    p.add_argument("--json-logs", dest="json_logs", action="store_true", help="Emit NDJSON logs on stderr.")


def _add_batch_io(p: argparse.ArgumentParser) -> None:
    p.add_argument("--batch", dest="batch", default=None, help="Input CSV with one VM per row.")
    p.add_argument(
        "--report",
        dest="report",
        default=None,
        help="Output report CSV (default: vm2vcd-report-<timestamp>.csv).",
    )
    p.add_argument("--no-summary", dest="no_summary", action="store_true", help="Do not print the console table.")


def _add_engine_knobs(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Validate, place and map networks only; nothing is moved.",
    )
    p.add_argument(
        "--network-mode",
        dest="network_mode",
        default=NetworkMode.MULTI.value,
        choices=[m.value for m in NetworkMode],
        help="multi: map every NIC; single: require exactly one distributed portgroup.",
    )
    p.add_argument(
        "--poll-interval",
        dest="poll_interval_s",
        type=float,
        default=5.0,
        help="Seconds between relocation task polls.",
    )
    p.add_argument(
        "--thick",
        dest="thin_provision",
        action="store_false",
        default=True,
        help="Keep the source disk format instead of converting to thin.",
    )
    p.add_argument("--tag-category", dest="tag_category", default=None, help="Only read tags from this category.")
    p.add_argument("--metadata-value", dest="metadata_value", default="true", help="Value written under Backup_N.")
    p.add_argument(
        "--metadata-type",
        dest="metadata_type",
        default=MetadataType.BOOLEAN.value,
        choices=[m.value for m in MetadataType],
    )
    p.add_argument(
        "--metadata-visibility",
        dest="metadata_visibility",
        default=Visibility.GENERAL.value,
        choices=[v.value for v in Visibility],
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vm2vcd",
        description=c("vm2vcd: bulk vCenter -> Cloud Director VM relocation", "green", ["bold"]),
        formatter_class=HelpFormatter,
        epilog=_build_epilog(),
    )
    _add_global_config_logging(p)
    _add_batch_io(p)
    _add_engine_knobs(p)
    return p


def _build_preparser() -> argparse.ArgumentParser:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", action="append", default=[])
    pre.add_argument("-v", "--verbose", action="count", default=0)
    pre.add_argument("-q", "--quiet", action="count", default=0)
    pre.add_argument("--log-file", dest="log_file", default=None)
    pre.add_argument("--json-logs", dest="json_logs", action="store_true")
    pre.add_argument("--dump-config", action="store_true")
    pre.add_argument("--dump-args", action="store_true")
    return pre


def _load_merged_config(logger: Any, cfgs: Sequence[str]) -> Dict[str, Any]:
    if not cfgs:
        return {}
    expanded = Config.expand_configs(logger, list(cfgs))
    return Config.load_many(logger, expanded)


def validate_args(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    if not args.batch:
        raise SystemExit("No batch file: pass --batch or set `batch:` in the config")
    if not isinstance(conf.get("source"), dict) or not conf["source"].get("host"):
        raise SystemExit("Config is missing `source.host`")
    if not isinstance(conf.get("vcd"), dict) or not conf["vcd"].get("url"):
        raise SystemExit("Config is missing `vcd.url`")
    if args.poll_interval_s <= 0:
        raise SystemExit(f"--poll-interval must be positive (got {args.poll_interval_s})")

    # Values from YAML bypass argparse choices.
    try:
        NetworkMode(str(args.network_mode).lower())
        MetadataType.parse(str(args.metadata_type))
        Visibility.parse(str(args.metadata_visibility))
    except ValueError as e:
        raise SystemExit(str(e))

    try:
        MetadataTagger.check_value(args.metadata_value, MetadataType.parse(str(args.metadata_type)))
    except MetadataValueError as e:
        raise SystemExit(f"--metadata-value does not fit --metadata-type: {e}")


def parse_args_with_config(
    argv: Optional[Sequence[str]] = None,
    logger: Any = None,
) -> Tuple[argparse.Namespace, Dict[str, Any], Any]:
    """
    Flow:
      Phase 0: parse only the flags needed to locate config and set up logging
      Phase 1: load and merge config files
      Phase 2: apply config as parser defaults
      Phase 3: full parse (CLI flags override config)
      Phase 4: validate merged config + args
    """
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)

    parser = build_parser()

    pre = _build_preparser()
    args0, _rest = pre.parse_known_args(argv)

    if logger is None:
        logger = Log.setup(
            getattr(args0, "verbose", 0),
            getattr(args0, "log_file", None),
            quiet=getattr(args0, "quiet", 0),
            json_logs=getattr(args0, "json_logs", False),
        )

    conf = _load_merged_config(logger, getattr(args0, "config", None) or [])

    if getattr(args0, "dump_config", False):
        print(U.json_dump(conf))
        raise SystemExit(0)

    Config.apply_as_defaults(logger, parser, conf)

    args = parser.parse_args(argv)

    if getattr(args0, "dump_args", False):
        print(U.json_dump(vars(args)))
        raise SystemExit(0)

    validate_args(args, conf)
    return args, conf, logger
