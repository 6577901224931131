from psl import parser, ast, op, types, Errors
import pytest


@pytest.fixture
def ExprParser():
    return parser.PslParser(parser.ParseEntryPoint.Expression)


class TestExpressionParsing:
    def testParseBinaryExpression(self, ExprParser):
        expr = "23 + 48 * 18"
        exprNode = ExprParser.Parse(expr)

        assert isinstance(exprNode, ast.BinaryExpression)
        l0, r0 = exprNode.GetLeft(), exprNode.GetRight()
        assert exprNode.GetOperation() == op.Operation.ADD
        assert isinstance(l0, ast.LiteralExpression)
        assert isinstance(r0, ast.BinaryExpression)

        l1, r1 = r0.GetLeft(), r0.GetRight()
        assert r0.GetOperation() == op.Operation.MUL
        assert isinstance(l1, ast.LiteralExpression)
        assert isinstance(r1, ast.LiteralExpression)

        assert l0.GetValue() == 23
        assert l0.GetType() == types.Integer()
        assert l1.GetValue() == 48
        assert l1.GetType() == types.Integer()
        assert r1.GetValue() == 18
        assert r1.GetType() == types.Integer()

    def testMemberAccessExpression(self, ExprParser):
        expr = "foo.bar"
        exprNode = ExprParser.Parse(expr)

        assert isinstance(exprNode, ast.MemberAccessExpression)
        p = exprNode.GetParent()
        assert isinstance(p, ast.PrimaryExpression)
        assert p.GetName() == "foo"
        assert exprNode.GetMember() == "bar"

    def testUnsignedAndHexLiterals(self, ExprParser):
        exprNode = ExprParser.Parse("0x10u + 3u")

        assert exprNode.GetLeft().GetValue() == 16
        assert exprNode.GetLeft().GetType() == types.UnsignedInteger()
        assert exprNode.GetRight().GetValue() == 3

    def testMethodCallExpression(self, ExprParser):
        exprNode = ExprParser.Parse("diffuse.sample(uv, s)")

        assert isinstance(exprNode, ast.MethodCallExpression)
        assert exprNode.GetName() == "sample"
        assert exprNode.GetReceiver().GetName() == "diffuse"
        assert len(exprNode.GetArguments()) == 2

    def testSyntaxErrorRaises(self, ExprParser):
        with pytest.raises(Errors.CompileException) as e:
            ExprParser.Parse("1 + * 2")
        assert e.value.message == Errors.ERROR_SYNTAX


class TestPipelineParsing:
    def testParseParameterRoles(self):
        p = parser.PslParser()
        root = p.Parse("""
        pipeline P (
            float4x4 transform,
            uniform float scale,
            vertex_buffer(1) Vertex vertices,
            instance_buffer(2) Instance instances,
            fragment_texture(3) texture2d<uint> lookup,
            position float4 outPosition,
            color_target(0) float4 outColor)
        {
        }""")

        assert isinstance(root, ast.Module)
        pipeline = root.GetPipelines()[0]
        assert pipeline.GetName() == "P"

        roles = [(p.GetRole(), p.GetSlot(),)
                 for p in pipeline.GetParameters()]
        assert roles == [
            (ast.ParameterRole.Uniform, None,),
            (ast.ParameterRole.Uniform, None,),
            (ast.ParameterRole.VertexBuffer, 1,),
            (ast.ParameterRole.InstanceBuffer, 2,),
            (ast.ParameterRole.FragmentTexture, 3,),
            (ast.ParameterRole.Position, None,),
            (ast.ParameterRole.ColorTarget, 0,),
        ]

        lookup = pipeline.GetParameter("lookup").GetType()
        assert lookup.GetName() == "texture2d"
        assert lookup.GetComponentName() == "uint"

    def testParseStructuresAndConstants(self):
        p = parser.PslParser()
        root = p.Parse("""
        struct Vertex { float3 position; float2 uv; }
        const float scale = 2.0;
        """)

        assert [t.GetName() for t in root.GetTypes()] == ["Vertex"]
        assert [c.GetName() for c in root.GetConstants()] == ["scale"]
        fields = root.GetTypes()[0].GetFields()
        assert [f.GetName() for f in fields] == ["position", "uv"]

    def testRoleNamesAreNotReserved(self):
        p = parser.PslParser()
        root = p.Parse("""
        struct Vertex { float3 position; }
        pipeline P (Light light, vertex_buffer(0) Vertex vertices,
                    position float4 outPosition)
        {
            float3 position = vertices.position;
            outPosition = float4(position, 1.0);
        }""")

        pipeline = root.GetPipelines()[0]
        light = pipeline.GetParameter("light")
        assert light.GetRole() == ast.ParameterRole.Uniform
        assert light.GetType().GetName() == "Light"
        assert pipeline.GetParameter("outPosition").GetRole() == \
            ast.ParameterRole.Position

    def testUnknownRoleRaises(self):
        p = parser.PslParser()
        with pytest.raises(Errors.CompileException) as e:
            p.Parse("pipeline P (varying float4 x) {}", "roles.psl")
        assert e.value.message == Errors.ERROR_SYNTAX
        assert "'varying'" in str(e.value)
        assert str(e.value.location) == "roles.psl:1:13"

    def testRoleSlotMismatchRaises(self):
        p = parser.PslParser()
        with pytest.raises(Errors.CompileException) as e:
            p.Parse("pipeline P (position(0) float4 x) {}")
        assert e.value.message == Errors.ERROR_SYNTAX

        with pytest.raises(Errors.CompileException):
            p.Parse("pipeline P (color_target float4 x) {}")
