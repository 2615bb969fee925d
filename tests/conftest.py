"""
Shared fixtures for pom-editor tests.
"""

import os

import pytest

from src.pom_editor import cli_config
from src.pom_editor.error_handling import setup_error_handling

NAMESPACED_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 http://maven.apache.org/xsd/maven-4.0.0.xsd">
    <modelVersion>4.0.0</modelVersion>
    <groupId>org.example</groupId>
    <artifactId>demo</artifactId>
    <version>0.1.0</version>
    <!-- runtime libraries -->
    <dependencies>
        <dependency>
            <groupId>org.example</groupId>
            <artifactId>lib</artifactId>
            <version>2.0.0</version>
        </dependency>
        <dependency>
            <groupId>junit</groupId>
            <artifactId>junit</artifactId>
            <version>4.12</version>
            <scope>test</scope>
        </dependency>
    </dependencies>
    <build>
        <plugins>
            <plugin>
                <groupId>org.apache.maven.plugins</groupId>
                <artifactId>maven-compiler-plugin</artifactId>
                <version>3.8.1</version>
            </plugin>
        </plugins>
    </build>
</project>
"""

EMPTY_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project>
  <modelVersion>4.0.0</modelVersion>
  <groupId>org.example</groupId>
  <artifactId>empty</artifactId>
  <version>1.0</version>
</project>
"""


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep every test away from user config files and POM_EDITOR_* variables."""
    for name in list(os.environ):
        if name.startswith("POM_EDITOR_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(cli_config, "find_config_file", lambda: None)
    cli_config.reset_config()
    setup_error_handling()
    yield
    cli_config.reset_config()


@pytest.fixture
def temp_dir(tmp_path):
    """Working directory for test files."""
    return tmp_path


@pytest.fixture
def sample_pom_xml(temp_dir):
    """A namespaced POM with two dependencies and a build section."""
    pom = temp_dir / "pom.xml"
    pom.write_text(NAMESPACED_POM, encoding="utf-8")
    return pom


@pytest.fixture
def empty_pom_xml(temp_dir):
    """A POM without namespace and without a <dependencies> section."""
    pom = temp_dir / "pom.xml"
    pom.write_text(EMPTY_POM, encoding="utf-8")
    return pom
