from psl.ast import SourceMapping, Location
from psl import parser, Errors
import pytest


class TestAstSourceMapping:
    def testLineOffsets(self):
        sm = SourceMapping('''0\n11\n\n2''')
        #                     0 123 4 56
        #                     0 011 1 23
        assert sm.GetLineFromOffset(0) == 0
        assert sm.GetLineFromOffset(1) == 0
        assert sm.GetLineFromOffset(2) == 1
        assert sm.GetLineFromOffset(4) == 1
        assert sm.GetLineFromOffset(5) == 2
        assert sm.GetLineFromOffset(6) == 3

    def testLocationFormatsLineAndColumn(self):
        sm = SourceMapping('''a\n  bc''', 'test.psl')
        location = Location((4, 6,), sm)
        assert str(location) == 'test.psl:2:3'

    def testSyntaxErrorCarriesLocation(self):
        p = parser.PslParser()
        with pytest.raises(Errors.CompileException) as e:
            p.Parse('''pipeline P ()\n{\n    1 +;\n}''', 'broken.psl')
        assert str(e.value).startswith('broken.psl:3:8')
