from psl.passes.ValidateVariableNames import ValidateVariableNamesVisitor
from psl import parser


def _Validate(source):
    module = parser.PslParser().Parse(source)
    v = ValidateVariableNamesVisitor()
    v.Visit(module)
    return v


class TestValidateVariableNames:
    def testReusingParameterNameForLocalVariableFails(self):
        v = _Validate('''
        pipeline P (float a, position float4 p)
        {
            float a = 1.0;
        }''')

        assert not v.valid

    def testShadowingInNestedBlockFails(self):
        v = _Validate('''
        pipeline P (position float4 p)
        {
            float a = 1.0;
            if (a > 0.0) { float a = 2.0; }
        }''')

        assert not v.valid

    def testSameNameInSiblingBlocksWorks(self):
        v = _Validate('''
        pipeline P (position float4 p)
        {
            { float a = 1.0; }
            { float a = 2.0; }
        }''')

        assert v.valid

    def testSameNameInDifferentPipelinesWorks(self):
        v = _Validate('''
        pipeline P (position float4 p) { float a = 1.0; }
        pipeline Q (position float4 p) { float a = 1.0; }
        ''')

        assert v.valid

    def testShadowingConstantFails(self):
        v = _Validate('''
        const float scale = 2.0;
        pipeline P (position float4 p)
        {
            float scale = 1.0;
        }''')

        assert not v.valid
