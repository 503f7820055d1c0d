"""
Tests for the pass driver.
"""

from csbindgen.passes import CppApiPass, VisitStage
from csbindgen.pipeline import default_passes

from builders import klass, method, namespace, unit


class RecordingPass(CppApiPass):
    """Records every callback it receives."""

    def __init__(self, log, label="record", skip=()):
        self.log = log
        self.label = label
        self.skip = set(skip)

    def start(self, ctx):
        self.log.append((self.label, "start"))

    def visit(self, ctx, entity, stage):
        self.log.append((self.label, stage.value, entity.unique_name))
        return entity.unique_name not in self.skip

    def stop(self, ctx):
        self.log.append((self.label, "stop"))


class FailingPass(CppApiPass):
    def visit(self, ctx, entity, stage):
        raise RuntimeError("boom")


class AbortingPass(CppApiPass):
    def start(self, ctx):
        ctx.abort("fatal condition")

    def visit(self, ctx, entity, stage):
        return True


class SneakyEmitter(CppApiPass):
    """Claims not to mutate but annotates anyway."""
    mutates = False

    def visit(self, ctx, entity, stage):
        entity.annotations["touched"] = True
        return True


class ExcludedVisitor(RecordingPass):
    visits_excluded = True


def _sample():
    return unit(namespace("Urho3D", klass("Node", method("Update")), klass("Scene")))


class TestTraversal:
    """Test visiting order."""

    def test_enter_exit_order(self, build_ast, run_passes):
        log = []
        run_passes(build_ast(_sample()), [RecordingPass(log)])
        assert log == [
            ("record", "start"),
            ("record", "enter", "Urho3D"),
            ("record", "enter", "Urho3D::Node"),
            ("record", "enter", "Urho3D::Node::Update()"),
            ("record", "exit", "Urho3D::Node::Update()"),
            ("record", "exit", "Urho3D::Node"),
            ("record", "enter", "Urho3D::Scene"),
            ("record", "exit", "Urho3D::Scene"),
            ("record", "exit", "Urho3D"),
            ("record", "stop"),
        ]

    def test_false_skips_children(self, build_ast, run_passes):
        log = []
        run_passes(build_ast(_sample()), [RecordingPass(log, skip=["Urho3D::Node"])])
        visited = [entry[2] for entry in log if len(entry) == 3]
        assert "Urho3D::Node::Update()" not in visited
        assert ("record", "exit", "Urho3D::Node") in log

    def test_excluded_entities_skipped(self, build_ast, run_passes):
        ast = build_ast(_sample(), include=["Urho3D::**"], exclude=["Urho3D::Node"])
        log = []
        run_passes(ast, [RecordingPass(log)])
        assert all("Node" not in entry[2] for entry in log if len(entry) == 3)

    def test_opt_in_to_excluded(self, build_ast, run_passes):
        ast = build_ast(_sample(), include=["Urho3D::**"], exclude=["Urho3D::Node"])
        log = []
        run_passes(ast, [ExcludedVisitor(log)])
        assert ("record", "enter", "Urho3D::Node") in log

    def test_passes_run_in_order(self, build_ast, run_passes):
        log = []
        run_passes(build_ast(_sample()), [RecordingPass(log, "first"), RecordingPass(log, "second")])
        labels = [entry[0] for entry in log]
        assert labels.index("second") > max(i for i, label in enumerate(labels) if label == "first")


class TestFailures:
    """Test aborts."""

    def test_exception_aborts(self, build_ast, run_passes):
        log = []
        ctx = run_passes(build_ast(_sample()), [FailingPass(), RecordingPass(log)])
        assert ctx.aborted
        assert "FailingPass" in ctx.abort_reason
        assert "boom" in ctx.abort_reason
        assert log == []

    def test_requested_abort_stops_later_passes(self, build_ast, run_passes):
        log = []
        ctx = run_passes(build_ast(_sample()), [AbortingPass(), RecordingPass(log)])
        assert ctx.abort_reason == "fatal condition"
        assert log == []

    def test_non_mutating_pass_verified(self, build_ast, run_passes):
        ctx = run_passes(build_ast(_sample()), [SneakyEmitter()])
        assert ctx.aborted
        assert "modified the meta-AST" in ctx.abort_reason


class TestDefaultPasses:
    """Test the standard pipeline."""

    def test_order(self):
        assert [p.name for p in default_passes()] == [
            "TypeMapsPass",
            "UnknownTypesPass",
            "GenerateClassWrappersPass",
            "CustomRulesPass",
            "MoveGlobalsPass",
            "ConvertToPropertiesPass",
            "ImplementInterfacesPass",
            "GenerateCApiPass",
            "GeneratePInvokePass",
            "GenerateCSApiPass",
        ]

    def test_emitters_do_not_mutate(self):
        emitters = default_passes()[-3:]
        assert all(not p.mutates for p in emitters)
