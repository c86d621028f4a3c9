from ape.utils import load_config

from fantium_deployment.constants import OZ_DEPENDENCY_NAME, OZ_DEPENDENCY_VERSION, PROJECT_ROOT


def _dependencies(config):
    return {dependency["name"]: dependency for dependency in config["dependencies"]}


def test_project_sources_compile_with_solc_0_8_13():
    config = load_config(PROJECT_ROOT / "ape-config.yaml", expand_envars=False)
    assert config["solidity"]["version"] == "0.8.13"
    assert config["solidity"]["optimize"] is True
    assert config["solidity"]["optimization_runs"] == 200


def test_upgradeable_base_contracts_accept_solc_0_8_13():
    config = load_config(PROJECT_ROOT / "ape-config.yaml", expand_envars=False)
    upgradeable = _dependencies(config)["openzeppelin-upgradeable"]
    # 5.x requires pragma ^0.8.20
    assert upgradeable["version"].startswith("4.")
    assert (
        f"@openzeppelin/contracts-upgradeable=openzeppelin-upgradeable/v{upgradeable['version']}"
        in config["solidity"]["import_remapping"]
    )


def test_proxy_dependency_has_its_own_compiler():
    config = load_config(PROJECT_ROOT / "ape-config.yaml", expand_envars=False)
    proxies = _dependencies(config)[OZ_DEPENDENCY_NAME]
    assert proxies["version"] == OZ_DEPENDENCY_VERSION
    assert proxies["config_override"]["solidity"]["version"] == "0.8.20"
