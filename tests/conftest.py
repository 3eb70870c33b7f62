"""Shared fixtures: a small maven project with a local repository."""

import pytest

PROJECT_POM = """<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <groupId>com.example</groupId>
    <artifactId>app</artifactId>
    <version>1.0</version>
    <dependencies>
        <dependency>
            <groupId>org.foo</groupId>
            <artifactId>a</artifactId>
            <version>1.0</version>
        </dependency>
    </dependencies>
</project>
"""

A_POM = """<project>
    <groupId>org.foo</groupId>
    <artifactId>a</artifactId>
    <version>1.0</version>
    <dependencies>
        <dependency>
            <groupId>org.foo</groupId>
            <artifactId>b</artifactId>
            <version>1.0</version>
            <scope>test</scope>
        </dependency>
        <dependency>
            <groupId>org.foo</groupId>
            <artifactId>c</artifactId>
            <version>1.0</version>
            <scope>runtime</scope>
        </dependency>
    </dependencies>
</project>
"""

C_POM = """<project>
    <groupId>org.foo</groupId>
    <artifactId>c</artifactId>
    <version>1.0</version>
</project>
"""

TREE = """com.example:app:jar:1.0
\\- org.foo:a:jar:1.0:compile
"""


class MavenProject:
    """Paths of the project fixture."""

    def __init__(self, root):
        self.root = root
        self.pom_file = root / "pom.xml"
        self.tree_file = root / "tree.txt"
        self.local_repository = root / "m2"

    def install(self, artifact_id, content):
        pom_file = self.local_repository / "org" / "foo" / artifact_id / "1.0" / f"{artifact_id}-1.0.pom"
        pom_file.parent.mkdir(parents=True, exist_ok=True)
        pom_file.write_text(content)


@pytest.fixture
def maven_project(tmp_path):
    """
    app -> a (compile) as resolved by maven; a declares b (test) and c (runtime).
    """
    project = MavenProject(tmp_path)
    project.pom_file.write_text(PROJECT_POM)
    project.tree_file.write_text(TREE)
    project.install("a", A_POM)
    project.install("c", C_POM)
    return project
