"""Tests for POM-declared transitive dependencies."""

from conftest import FakeHttp, make_dependency
from depinject.models import Coordinate, Repository, ResolutionResult
from depinject.resolver import PomDescriptorReader, parse_pom
from depinject.resolver.pom import pom_url

POM = """<?xml version="1.0"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <parent>
    <groupId>org.parent</groupId>
    <artifactId>parent</artifactId>
    <version>9</version>
  </parent>
  <artifactId>demo</artifactId>
  <version>1.0</version>
  <properties>
    <lib.version>3.1</lib.version>
  </properties>
  <dependencies>
    <dependency>
      <groupId>org.lib</groupId>
      <artifactId>lib</artifactId>
      <version>${lib.version}</version>
    </dependency>
    <dependency>
      <groupId>${project.groupId}</groupId>
      <artifactId>sibling</artifactId>
      <version>${project.version}</version>
      <type>whl</type>
      <classifier>py3</classifier>
      <scope>runtime</scope>
    </dependency>
    <dependency>
      <groupId>org.test</groupId>
      <artifactId>testing</artifactId>
      <version>1</version>
      <scope>test</scope>
    </dependency>
    <dependency>
      <groupId>org.opt</groupId>
      <artifactId>optional</artifactId>
      <version>1</version>
      <optional>true</optional>
    </dependency>
    <dependency>
      <groupId>org.managed</groupId>
      <artifactId>managed</artifactId>
    </dependency>
  </dependencies>
</project>
"""


class TestParsePom:
    """Test parse_pom filtering and property substitution."""

    def test_runtime_dependencies_with_properties(self):
        """Test compile/runtime dependencies are returned with substituted values."""
        found = parse_pom(POM, make_dependency())

        assert [d.coordinate for d in found] == [
            Coordinate("org.lib", "lib", "3.1"),
            Coordinate("org.parent", "sibling", "1.0", "py3"),
        ]

    def test_type_and_default_extension(self):
        """Test <type> overrides the parent's extension."""
        found = parse_pom(POM, make_dependency())

        assert found[0].extension == "zip"
        assert found[1].extension == "whl"

    def test_pom_without_namespace(self):
        """Test POMs without the Maven namespace are understood."""
        text = (
            "<project><dependencies><dependency><groupId>g</groupId>"
            "<artifactId>a</artifactId><version>1</version></dependency></dependencies></project>"
        )

        assert [d.coordinate for d in parse_pom(text, make_dependency())] == [Coordinate("g", "a", "1")]

    def test_malformed_pom_yields_nothing(self):
        """Test unparseable XML is skipped."""
        assert parse_pom("<project", make_dependency()) == []


class TestPomDescriptorReader:
    """Test fetching the POM next to a resolved artifact."""

    def test_pom_url_drops_classifier(self):
        """Test the POM URL is derived from the artifact URL."""
        dependency = make_dependency("org.example:demo:1.0:py3")
        result = ResolutionResult(
            dependency.coordinate,
            "https://r/org/example/demo/1.0/demo-1.0-py3.zip",
            Repository("r", "https://r/"),
            "https://r/",
        )

        assert pom_url(result, dependency) == "https://r/org/example/demo/1.0/demo-1.0.pom"

    def test_missing_pom_is_empty(self):
        """Test a missing POM means no transitive dependencies."""
        dependency = make_dependency()
        url = "https://r/org/example/demo/1.0/demo-1.0.zip"
        result = ResolutionResult(dependency.coordinate, url, Repository("r", "https://r/"), "https://r/")
        http = FakeHttp()

        assert PomDescriptorReader(http).read(dependency, result) == []
        assert http.urls() == ["https://r/org/example/demo/1.0/demo-1.0.pom"]
