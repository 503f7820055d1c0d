"""
Tests for the meta-AST transformation passes.
"""

from csbindgen.config import GeneratorConfig
from csbindgen.meta import EntityKind
from csbindgen.passes import (
    ConvertToPropertiesPass,
    CustomRulesPass,
    GenerateClassWrappersPass,
    ImplementInterfacesPass,
    MoveGlobalsPass,
    TypeMapsPass,
    UnknownTypesPass,
)
from csbindgen.parser import Access
from csbindgen.rules import RuleSet
from csbindgen.types.shapes import ClassType, EnumType, UnknownType

from builders import (
    BOOL,
    FLOAT,
    INT,
    STRING,
    VECTOR3,
    VOID,
    const,
    const_ref,
    ctor,
    enum,
    field,
    function,
    klass,
    method,
    namespace,
    param,
    ptr,
    struct,
    unit,
    variable,
)


def _rules(**data):
    data.setdefault("value_types", {"Urho3D::Vector3": "Vector3"})
    return RuleSet.from_dict(data)


def _properties(ast, cls):
    return [c for c in ast.children_of(ast[cls]) if c.kind == EntityKind.PROPERTY]


class TestTypeMapsPass:
    """Test registry seeding."""

    def test_registers_classes_and_enums(self, build_ast, run_passes):
        ast = build_ast(unit(namespace(
            "Urho3D",
            enum("CreateMode", ("REPLICATED", 0)),
            struct("Vector3", field("x_", FLOAT)),
            klass("Node", klass("Inner")),
        )))
        ctx = run_passes(ast, [TypeMapsPass()], rules=_rules())
        assert ctx.types.is_class("Urho3D::Node")
        assert not ctx.types.is_class("Urho3D::Vector3")
        assert ctx.types.get_class("Urho3D::Node::Inner").managed == "Node.Inner"
        assert ctx.types.lookup(EnumType("Urho3D::CreateMode")).managed == "CreateMode"

    def test_refcounted_by_methods(self, build_ast, run_passes):
        ast = build_ast(unit(namespace(
            "Urho3D",
            klass("RefCounted", method("AddRef"), method("ReleaseRef")),
            klass("Node", bases=["Urho3D::RefCounted"]),
            klass("Plain"),
        )))
        ctx = run_passes(ast, [TypeMapsPass()])
        assert ctx.types.get_class("Urho3D::Node").refcounted
        assert not ctx.types.get_class("Urho3D::Plain").refcounted

    def test_refcounted_by_rule(self, build_ast, run_passes):
        ast = build_ast(unit(namespace(
            "Urho3D",
            klass("Object"),
            klass("Node", bases=["Urho3D::Object"]),
        )))
        ctx = run_passes(ast, [TypeMapsPass()], rules=_rules(refcounted_bases=["Urho3D::Object"]))
        assert ctx.types.get_class("Urho3D::Node").refcounted

    def test_same_name_in_two_namespaces(self, build_ast, run_passes):
        ast = build_ast(unit(
            namespace("A", klass("Node", klass("Inner"))),
            namespace("B", klass("Node"), klass("Scene")),
        ))
        ctx = run_passes(ast, [TypeMapsPass()])
        assert ast["A::Node"].cs_name == "A_Node"
        assert ast["B::Node"].cs_name == "B_Node"
        assert ctx.types.get_class("A::Node").managed == "A_Node"
        assert ctx.types.get_class("A::Node::Inner").managed == "A_Node.Inner"
        assert ast["B::Scene"].cs_name == "Scene"


class TestUnknownTypesPass:
    """Test unmappable signatures."""

    def test_opaque_and_excluded(self, build_ast, run_passes, engine_unit):
        ast = build_ast(engine_unit, include=["Urho3D::**"], exclude=["Urho3D::Secret"])
        ctx = run_passes(ast, [TypeMapsPass(), UnknownTypesPass()], rules=_rules())

        hidden = ast["Urho3D::Node::Hidden()"]
        assert hidden.included
        assert hidden.annotations["opaque_result"]

        consume = ast["Urho3D::Node::Consume(Urho3D::Secret)"]
        assert consume.annotations["exclude_reason"] == "unknown type"
        assert any("entity excluded" in str(w) for w in ctx.warnings)

    def test_opaque_handles_disabled(self, build_ast, run_passes, engine_unit):
        config = GeneratorConfig()
        config.generation.opaque_handles = False
        ast = build_ast(engine_unit, include=["Urho3D::**"], exclude=["Urho3D::Secret"])
        run_passes(ast, [TypeMapsPass(), UnknownTypesPass()], rules=_rules(), config=config)
        assert ast["Urho3D::Node::Hidden()"].excluded

    def test_unknown_field_and_parameter(self, build_ast, run_passes):
        callback = UnknownType("void (*)(int)")
        ast = build_ast(unit(klass(
            "Timer",
            field("handler_", callback),
            method("SetHandler", VOID, param("handler", callback)),
            method("GetDelay", FLOAT),
        )))
        run_passes(ast, [TypeMapsPass(), UnknownTypesPass()])
        assert ast["Timer::handler_"].excluded
        assert ast["Timer::SetHandler(void (*)(int))"].excluded
        assert ast["Timer::GetDelay()"].included


class TestGenerateClassWrappersPass:
    """Test wrapper selection."""

    def test_wrapper_for_virtual_and_protected(self, build_ast, run_passes):
        ast = build_ast(unit(namespace(
            "Urho3D",
            klass(
                "Actor",
                ctor("Actor"),
                ctor("Actor", param("id", INT), access=Access.PROTECTED),
                method("Update", VOID, param("timeStep", FLOAT), is_virtual=True),
                method("OnStart", access=Access.PROTECTED),
            ),
        )))
        run_passes(ast, [TypeMapsPass(), UnknownTypesPass(), GenerateClassWrappersPass()])

        actor = ast["Urho3D::Actor"]
        assert actor.annotations["wrapper_class"] == "Urho3D_Actor_Wrapper"
        assert ast["Urho3D::Actor::Update(float)"].annotations["overridable"]
        assert ast["Urho3D::Actor::OnStart()"].annotations["via_wrapper"]
        assert ast["Urho3D::Actor::Actor(int)"].annotations["exclude_reason"] == "protected constructor"

    def test_final_class_loses_protected_members(self, build_ast, run_passes):
        ast = build_ast(unit(klass(
            "Sealed",
            method("Update", is_virtual=True),
            method("OnStart", access=Access.PROTECTED),
            is_final=True,
        )))
        run_passes(ast, [GenerateClassWrappersPass()])
        assert "wrapper_class" not in ast["Sealed"].annotations
        assert ast["Sealed::OnStart()"].annotations["exclude_reason"] == "protected member without wrapper"

    def test_no_wrapper_without_virtuals(self, build_ast, run_passes):
        ast = build_ast(unit(klass("Plain", method("Run"))))
        run_passes(ast, [GenerateClassWrappersPass()])
        assert "wrapper_class" not in ast["Plain"].annotations


class TestCustomRulesPass:
    """Test renames, ignored members and hooks."""

    def test_rename_and_ignore(self, build_ast, run_passes):
        ast = build_ast(unit(namespace(
            "Urho3D",
            klass("Node", method("RegisterObject", is_static=True), method("Update")),
            klass("Object"),
        )))
        rules = _rules(
            renames={"Urho3D::Node": "SceneNode", "Urho3D::Object": "object"},
            ignore_members=["Urho3D::*::RegisterObject"],
        )
        ctx = run_passes(ast, [TypeMapsPass(), CustomRulesPass()], rules=rules)

        assert ast["Urho3D::Node"].cs_name == "SceneNode"
        assert ctx.types.get_class("Urho3D::Node").managed == "SceneNode"
        assert ast["Urho3D::Object"].cs_name == "object_"
        assert ast["Urho3D::Node::RegisterObject()"].annotations["exclude_reason"] == "ignored"
        assert ast["Urho3D::Node::Update()"].included

    def test_hooks(self, build_ast, run_passes):
        ast = build_ast(unit(namespace("Urho3D", klass("Node", method("Update")))))
        seen = []

        def record(ctx, entity):
            seen.append(entity.unique_name)

        def exclude_updates(ctx, entity):
            if entity.name == "Update":
                entity.exclude("custom")

        custom = CustomRulesPass([record])
        custom.add_hook(exclude_updates)
        run_passes(ast, [custom])

        assert seen == ["Urho3D", "Urho3D::Node", "Urho3D::Node::Update()"]
        assert ast["Urho3D::Node::Update()"].annotations["exclude_reason"] == "custom"

    @staticmethod
    def _user_of_foo():
        foo = ClassType("Urho3D::Foo")
        return unit(namespace(
            "Urho3D",
            klass("Foo"),
            klass(
                "Node",
                method("GetFoo", ptr(foo)),
                method("Use", VOID, param("foo", ptr(foo))),
                method("Copy", VOID, param("foo", foo)),
            ),
        ))

    def test_ignored_class_is_unregistered(self, build_ast, run_passes):
        ast = build_ast(self._user_of_foo())
        rules = _rules(ignore_members=["Urho3D::Foo"])
        ctx = run_passes(ast, [TypeMapsPass(), UnknownTypesPass(), CustomRulesPass()], rules=rules)

        assert ast["Urho3D::Foo"].excluded
        assert not ctx.types.is_class("Urho3D::Foo")
        assert ast["Urho3D::Node::GetFoo()"].annotations["opaque_result"]
        use = ast["Urho3D::Node::Use(Urho3D::Foo*)"]
        assert use.included
        assert ast.children_of(use)[0].annotations["opaque"]
        assert ast["Urho3D::Node::Copy(Urho3D::Foo)"].annotations["exclude_reason"] == "unknown type"

    def test_hook_excluded_class_is_unregistered(self, build_ast, run_passes):
        ast = build_ast(self._user_of_foo())

        def drop_foo(ctx, entity):
            if entity.unique_name == "Urho3D::Foo":
                entity.exclude("custom")

        ctx = run_passes(ast, [TypeMapsPass(), UnknownTypesPass(), CustomRulesPass([drop_foo])])
        assert not ctx.types.is_class("Urho3D::Foo")
        assert ast["Urho3D::Node::GetFoo()"].annotations["opaque_result"]

    def test_rename_reaches_nested_types(self, build_ast, run_passes):
        ast = build_ast(unit(namespace("Urho3D", klass("Outer", klass("Inner", enum("Mode", ("ON", 1)))))))
        rules = _rules(renames={"Urho3D::Outer": "Renamed"})
        ctx = run_passes(ast, [TypeMapsPass(), CustomRulesPass()], rules=rules)

        assert ctx.types.get_class("Urho3D::Outer").managed == "Renamed"
        assert ctx.types.get_class("Urho3D::Outer::Inner").managed == "Renamed.Inner"
        assert ctx.types.lookup(EnumType("Urho3D::Outer::Inner::Mode")).managed == "Renamed.Inner.Mode"


class TestMoveGlobalsPass:
    """Test relocation of free functions and variables."""

    def test_moves_into_container(self, build_ast, run_passes):
        ast = build_ast(unit(namespace(
            "Urho3D",
            function("GetRandom", FLOAT),
            variable("MAX_LIGHTS", const(INT)),
            klass("Node"),
        )))
        run_passes(ast, [MoveGlobalsPass()])

        container = ast["Urho3D::Globals"]
        assert container.kind == EntityKind.CLASS
        assert container.annotations["static_class"]
        function_entity = ast["Urho3D::GetRandom()"]
        assert ast.parent_of(function_entity) is container
        assert function_entity.is_static
        assert ast.parent_of(ast["Urho3D::MAX_LIGHTS"]) is container
        assert container.cs_name == "Globals"

    def test_container_per_namespace(self, build_ast, run_passes):
        ast = build_ast(unit(
            namespace("Urho3D", function("GetRandom", FLOAT)),
            namespace("Game", function("Start")),
        ))
        run_passes(ast, [MoveGlobalsPass()])
        assert ast["Urho3D::Globals"].cs_name == "Urho3D_Globals"
        assert ast["Game::Globals"].cs_name == "Game_Globals"

    def test_avoids_declared_class(self, build_ast, run_passes):
        ast = build_ast(unit(namespace("Urho3D", klass("Globals"), function("Start"))))
        run_passes(ast, [MoveGlobalsPass()])
        assert ast.parent_of(ast["Urho3D::Start()"]).unique_name == "Urho3D::Globals_"

    def test_methods_stay(self, build_ast, run_passes):
        ast = build_ast(unit(namespace("Urho3D", klass("Node", method("Update", is_static=True)))))
        run_passes(ast, [MoveGlobalsPass()])
        assert "Urho3D::Globals" not in ast


class TestConvertToPropertiesPass:
    """Test accessor merging."""

    PASSES = staticmethod(lambda: [TypeMapsPass(), UnknownTypesPass(), ConvertToPropertiesPass()])

    def test_pair_merges_into_one_property(self, build_ast, run_passes):
        ast = build_ast(unit(namespace("Urho3D", klass(
            "Node",
            method("SetPosition", VOID, param("position", const_ref(VECTOR3))),
            method("GetPosition", const_ref(VECTOR3), is_const=True),
        ))))
        run_passes(ast, self.PASSES(), rules=_rules())

        props = _properties(ast, "Urho3D::Node")
        assert len(props) == 1
        prop = props[0]
        assert prop.unique_name == "Urho3D::Node::Position"
        assert prop.annotations["getter"] == "Urho3D::Node::GetPosition() const"
        assert prop.annotations["setter"] == "Urho3D::Node::SetPosition(const Urho3D::Vector3&)"
        assert ast["Urho3D::Node::GetPosition() const"].annotations["property"] == prop.unique_name
        assert ast["Urho3D::Node::SetPosition(const Urho3D::Vector3&)"].annotations["property"] == prop.unique_name

    def test_lone_getter_is_read_only(self, build_ast, run_passes):
        ast = build_ast(unit(namespace("Urho3D", klass(
            "Node",
            method("GetName", const_ref(STRING), is_const=True),
        ))))
        run_passes(ast, self.PASSES(), rules=_rules())
        prop = _properties(ast, "Urho3D::Node")[0]
        assert prop.name == "Name"
        assert "setter" not in prop.annotations

    def test_mismatched_setter_not_merged(self, build_ast, run_passes):
        ast = build_ast(unit(klass(
            "Node",
            method("GetScale", FLOAT),
            method("SetScale", VOID, param("scale", INT)),
        )))
        run_passes(ast, self.PASSES())
        prop = _properties(ast, "Node")[0]
        assert "setter" not in prop.annotations
        assert "property" not in ast["Node::SetScale(int)"].annotations

    def test_is_prefix(self, build_ast, run_passes):
        ast = build_ast(unit(klass(
            "Node",
            method("IsEnabled", BOOL, is_const=True),
            method("SetEnabled", VOID, param("enable", BOOL)),
        )))
        run_passes(ast, self.PASSES())
        prop = _properties(ast, "Node")[0]
        assert prop.name == "Enabled"
        assert prop.annotations["setter"] == "Node::SetEnabled(bool)"

    def test_static_mismatch_not_merged(self, build_ast, run_passes):
        ast = build_ast(unit(klass(
            "Log",
            method("GetLevel", INT, is_static=True),
            method("SetLevel", VOID, param("level", INT)),
        )))
        run_passes(ast, self.PASSES())
        prop = _properties(ast, "Log")[0]
        assert prop.is_static
        assert "setter" not in prop.annotations

    def test_clash_skipped(self, build_ast, run_passes):
        ast = build_ast(unit(klass(
            "Node",
            method("GetSize", INT),
            method("Size", INT),
        )))
        ctx = run_passes(ast, self.PASSES())
        assert _properties(ast, "Node") == []
        assert any("clashes" in str(w) for w in ctx.warnings)

    def test_getter_with_parameters_ignored(self, build_ast, run_passes):
        ast = build_ast(unit(klass("Node", method("GetChild", INT, param("index", INT)))))
        run_passes(ast, self.PASSES())
        assert _properties(ast, "Node") == []

    def test_fields(self, build_ast, run_passes):
        ast = build_ast(unit(klass(
            "Light",
            field("m_brightness", FLOAT),
            field("range_", const(FLOAT)),
        )))
        run_passes(ast, self.PASSES())
        props = {p.name: p for p in _properties(ast, "Light")}
        assert props["Brightness"].annotations["field"] == "Light::m_brightness"
        assert not props["Brightness"].annotations.get("readonly")
        assert props["Range"].annotations["readonly"]


class TestImplementInterfacesPass:
    """Test interfaces for secondary bases and capabilities."""

    @staticmethod
    def _hierarchy():
        return unit(namespace(
            "Urho3D",
            klass("Object", method("GetTypeName", const_ref(STRING), is_const=True)),
            klass(
                "Serializable",
                method("Save", BOOL),
                method("GetName", const_ref(STRING), is_const=True),
                method("Load", BOOL, is_static=True),
            ),
            klass("Node", bases=["Urho3D::Object", "Urho3D::Serializable"]),
        ))

    def _run(self, build_ast, run_passes, **rules):
        ast = build_ast(self._hierarchy())
        passes = [TypeMapsPass(), UnknownTypesPass(), ConvertToPropertiesPass(), ImplementInterfacesPass()]
        ctx = run_passes(ast, passes, rules=_rules(**rules))
        return ast, ctx

    def test_secondary_base_becomes_interface(self, build_ast, run_passes):
        ast, _ = self._run(build_ast, run_passes)

        interface = ast["Urho3D::ISerializable"]
        assert interface.kind == EntityKind.INTERFACE
        assert interface.annotations["interface_of"] == "Urho3D::Serializable"
        assert ast["Urho3D::Serializable"].annotations["interfaces"] == ["Urho3D::ISerializable"]
        assert ast["Urho3D::Node"].annotations["interfaces"] == ["Urho3D::ISerializable"]
        assert "Urho3D::IObject" not in ast

    def test_members_copied(self, build_ast, run_passes):
        ast, _ = self._run(build_ast, run_passes)

        save = ast["Urho3D::Node::Save()"]
        assert save.annotations["inherited_from"] == "Urho3D::Serializable::Save()"
        assert save.annotations["implements"] == "Urho3D::ISerializable"
        assert "Urho3D::Node::Load()" not in ast

        name = ast["Urho3D::Node::Name"]
        assert name.kind == EntityKind.PROPERTY
        assert name.annotations["getter"] == "Urho3D::Node::GetName() const"
        assert ast["Urho3D::Node::GetName() const"].annotations["property"] == "Urho3D::Node::Name"

    def test_capability_interface(self, build_ast, run_passes):
        ast, _ = self._run(build_ast, run_passes, interfaces={"ISaveable": ["Save", "Name"]})

        interface = ast["ISaveable"]
        assert interface.annotations["capability"]
        assert interface.annotations["signature_from"] == "Urho3D::Serializable"
        assert "ISaveable" in ast["Urho3D::Node"].annotations["interfaces"]
        assert "interfaces" not in ast["Urho3D::Object"].annotations

    def test_capability_without_implementers(self, build_ast, run_passes):
        ast, ctx = self._run(build_ast, run_passes, interfaces={"IMissing": ["Fly"]})
        assert "IMissing" not in ast
        assert any("IMissing" in str(w) for w in ctx.warnings)

    def test_interface_name_taken(self, build_ast, run_passes):
        ast = build_ast(unit(namespace(
            "Urho3D",
            klass("ISerializable"),
            klass("Object"),
            klass("Serializable", method("Save", BOOL)),
            klass("Node", bases=["Urho3D::Object", "Urho3D::Serializable"]),
        )))
        run_passes(ast, [TypeMapsPass(), ImplementInterfacesPass()], rules=_rules())

        assert ast["Urho3D::ISerializable"].kind == EntityKind.CLASS
        interface = ast["Urho3D::ISerializable_"]
        assert interface.kind == EntityKind.INTERFACE
        assert ast["Urho3D::Node"].annotations["interfaces"] == ["Urho3D::ISerializable_"]

    def test_property_name_taken_in_derived(self, build_ast, run_passes):
        ast = build_ast(unit(namespace(
            "Urho3D",
            klass("Object"),
            klass("Serializable", method("GetName", const_ref(STRING), is_const=True)),
            klass(
                "Node",
                method("Name", INT),
                bases=["Urho3D::Object", "Urho3D::Serializable"],
            ),
        )))
        passes = [TypeMapsPass(), UnknownTypesPass(), ConvertToPropertiesPass(), ImplementInterfacesPass()]
        ctx = run_passes(ast, passes, rules=_rules())

        assert "Urho3D::Node::Name" not in ast
        assert "interfaces" not in ast["Urho3D::Node"].annotations
        assert ast["Urho3D::Serializable"].annotations["interfaces"] == ["Urho3D::ISerializable"]
        assert any("cannot implement" in str(w) for w in ctx.warnings)
