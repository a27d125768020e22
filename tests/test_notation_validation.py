from semcanvas import Graph, IssueSeverity, Link, Node, to_mermaid, validate_graph, validation_summary


def test_mermaid_scenario(scenario_graph: Graph) -> None:
    graph, _ = scenario_graph.add_link("b", "c", "covariance")

    lines = to_mermaid(graph).splitlines()

    assert lines[0] == "graph LR"
    assert lines[1].startswith("classDef latent")
    assert lines[2].startswith("classDef observed")
    assert lines[3:] == [
        "a((A)):::latent",
        "b((B)):::latent",
        "c[C]:::observed",
        "a --> b",
        "a --> c",
        "b <--> c",
    ]


def test_mermaid_label_falls_back_to_id_and_is_sanitized() -> None:
    graph = Graph(nodes=[
        Node(id="n1", label="", type="observed"),
        Node(id="n2", label='Job [sat] "2"', type="latent"),
    ])

    text = to_mermaid(graph)

    assert "n1[n1]:::observed" in text
    assert "n2((Job ‹sat› '2')):::latent" in text


def test_validate_clean_graph(scenario_graph: Graph) -> None:
    issues = validate_graph(scenario_graph)

    assert issues == []
    assert validation_summary(issues)["valid"] is True


def test_validate_empty_graph() -> None:
    issues = validate_graph(Graph())

    assert [i.severity for i in issues] == [IssueSeverity.INFO]


def test_validate_reports_problems() -> None:
    # model_construct skips the dangling-link filter so broken data can be inspected
    graph = Graph.model_construct(
        nodes=(Node(id="a", label="A"), Node(id="b", label=" "), Node(id="lonely", label="L")),
        links=(
            Link(source="a", target="b", type="covariance"),
            Link(source="b", target="a", type="covariance"),
            Link(source="a", target="a"),
            Link(source="a", target="ghost"),
        ),
    )

    issues = validate_graph(graph)
    messages = [i.message for i in issues]
    summary = validation_summary(issues)

    assert any("Isolated variables" in m and "lonely" in m for m in messages)
    assert any(i.node_id == "b" and "empty label" in i.message for i in issues)
    assert any("Duplicate covariance" in m for m in messages)
    assert any("Self-link" in m for m in messages)
    assert any("ghost" in m for m in messages)
    assert summary["errors"] == 1
    assert summary["valid"] is False
    assert issues[-1].to_dict()["type"] in ("warning", "error")


def test_validate_reports_duplicate_ids() -> None:
    graph = Graph.model_construct(
        nodes=(Node(id="a", label="A"), Node(id="a", label="A again"), Node(id="b", label="B")),
        links=(Link(source="a", target="b"),),
    )

    issues = validate_graph(graph)
    duplicates = [i for i in issues if "Duplicate variable id" in i.message]

    assert len(duplicates) == 1
    assert duplicates[0].severity == IssueSeverity.ERROR
    assert duplicates[0].node_id == "a"
    assert validation_summary(issues)["valid"] is False
