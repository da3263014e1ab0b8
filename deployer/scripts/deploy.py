#!/usr/bin/env python
# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

"""
Function host deployment script

Creates a resource group, a storage account, an application insights component and a Linux
consumption plan function app, then configures the function app's application settings.
Every run creates new resources, named from the project prefix and a random 4 digit suffix.

Usage:
    deploy-function-host [--config CONFIG_FILE] [--generate-config OUTPUT_FILE] [--prefix PREFIX]
                         [--location LOCATION] [--subscription SUBSCRIPTION] [--log-level LEVEL]

Options:
    --config CONFIG_FILE            Path to a YAML configuration file (optional)
    --generate-config OUTPUT_FILE   Generate a sample configuration file at the specified path and exit
    --prefix PREFIX                 Project prefix used in every resource name
    --location LOCATION             Azure region for every resource
    --subscription SUBSCRIPTION     Subscription to deploy to
    --log-level LEVEL               Log level (DEBUG, INFO, WARNING, ERROR)

The Shiftbase API URL and key, the database connection string and the target table are read
from the configuration file or from SHIFTBASE_API_URL, SHIFTBASE_API_KEY, DB_CONNECTION_STRING
and DB_TARGET_TABLE.
"""

# stdlib
import sys
from argparse import ArgumentParser, Namespace
from asyncio import run
from logging import WARNING, basicConfig, getLogger

# project
from config.deploy_config import (
    DeployConfig,
    InvalidConfigError,
    build_deploy_config,
    generate_config_file,
    load_config_file,
)
from config.env import (
    DEFAULT_LOG_LEVEL,
    LOG_LEVEL_SETTING,
    LOG_LEVELS,
    MissingConfigOptionError,
    parse_config_option,
    parse_log_level,
)
from provisioning.common import DeploymentIdentity, NamingError, get_resource_names
from provisioning.deploy_task import EXIT_FAILURE, EXIT_SUCCESS, DeploymentResult, DeployTask
from provisioning.report import SECRETS_FILTER, install_secret_filter, print_summary

log = getLogger("deploy")


def parse_args(argv: list[str] | None = None) -> Namespace:
    parser = ArgumentParser(description="Deploy a function host and the resources it depends on")
    parser.add_argument("--config", help="Path to a YAML configuration file (optional)")
    parser.add_argument(
        "--generate-config", metavar="OUTPUT_FILE", help="Generate a sample configuration file and exit"
    )
    parser.add_argument("--prefix", help="Project prefix used in every resource name")
    parser.add_argument("--location", help="Azure region for every resource")
    parser.add_argument("--subscription", help="Subscription to deploy to")
    parser.add_argument(
        "--log-level", type=str.upper, choices=LOG_LEVELS, help="Log level (DEBUG, INFO, WARNING, ERROR)"
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    basicConfig(level=level, format="%(asctime)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    getLogger().setLevel(level)
    # silence azure logging except for warnings
    getLogger("azure").setLevel(WARNING)
    install_secret_filter()


async def deploy(config: DeployConfig, identity: DeploymentIdentity) -> DeploymentResult:
    log.info("Started %s", DeployTask.NAME)
    async with DeployTask(config, identity) as task:
        result = await task.run()
    log.info("%s finished", DeployTask.NAME)
    return result


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level or parse_config_option(LOG_LEVEL_SETTING, parse_log_level, DEFAULT_LOG_LEVEL))

    if args.generate_config:
        try:
            generate_config_file(args.generate_config)
        except OSError as e:
            log.error("Error generating configuration file: %s", e)
            return EXIT_FAILURE
        log.info("Edit this file and run the script with: --config %s", args.generate_config)
        return EXIT_SUCCESS

    try:
        config = build_deploy_config(
            load_config_file(args.config),
            prefix=args.prefix,
            location=args.location,
            subscription_id=args.subscription,
            log_level=args.log_level,
        )
    except (InvalidConfigError, MissingConfigOptionError) as e:
        log.error("%s", e)
        return EXIT_FAILURE
    SECRETS_FILTER.add(*config.secret_values)
    getLogger().setLevel(config.log_level)

    identity = DeploymentIdentity.generate(config.prefix)
    try:
        names = get_resource_names(identity)
    except NamingError as e:
        log.error("%s", e)
        return EXIT_FAILURE

    log.info("Using prefix %s with suffix %s in %s", identity.prefix, identity.suffix, config.location)
    log.info("Using resource group name: %s", names.resource_group)
    log.info("Using storage account name: %s", names.storage_account)
    log.info("Using function app name: %s", names.function_app)

    result = run(deploy(config, identity))

    if result.reached_settings:
        print_summary(result)
    if result.failed:
        log.error("Deployment failed")
    elif result.warnings:
        log.warning("Deployment completed with %s warning(s)", len(result.warnings))
    else:
        log.info("Deployment completed successfully!")
    return result.exit_code


def cli() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":  # pragma: no cover
    cli()
