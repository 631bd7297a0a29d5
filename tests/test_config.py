"""
Tests for generator configuration.
"""

from extension_builder_core.config import GeneratorConfig


class TestGeneratorConfig:

    def test_defaults(self):
        config = GeneratorConfig()
        assert config.indent_size == 4
        assert config.max_depth == 200
        assert config.default_package == "com.example"
        assert config.missing_root_message == "// Add an 'AI2 Extension' block to begin"

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv('EXTBUILDER_INDENT_SIZE', '2')
        monkeypatch.setenv('EXTBUILDER_MAX_DEPTH', '50')
        monkeypatch.setenv('EXTBUILDER_DEFAULT_PACKAGE', 'org.acme')
        config = GeneratorConfig.from_env()
        assert config.indent_size == 2
        assert config.max_depth == 50
        assert config.default_package == 'org.acme'

    def test_from_env_ignores_bad_values(self, monkeypatch):
        monkeypatch.setenv('EXTBUILDER_INDENT_SIZE', 'wide')
        monkeypatch.setenv('EXTBUILDER_MAX_CHAIN_LENGTH', '0')
        config = GeneratorConfig.from_env()
        assert config.indent_size == 4
        assert config.max_chain_length == 5000
