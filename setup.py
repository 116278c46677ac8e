import os
from setuptools import setup, find_packages, Command
import subprocess

class BuildSphinx(Command):
    description = "Build Sphinx documentation."
    user_options = [
        ('builder=', 'b', 'Sphinx builder to use (html, latex)')
    ]

    def initialize_options(self):
        self.builder = 'html'
        self.build_dir = None

    def finalize_options(self):
        self.build_dir = os.path.join(os.path.dirname(__file__), 'docs/_build')

    def run(self):
        # Regenerate the API .rst files for the qode package first.
        from sphinx.ext.apidoc import main as sphinx_apidoc_main
        apidoc_args = [
            '--force',
            '--module-first',
            '-o', os.path.join('docs', 'source'),
            'qode'
        ]
        sphinx_apidoc_main(apidoc_args)

        from sphinx.cmd.build import main as sphinx_main
        args = [
            '-b', self.builder,
            os.path.join('docs', 'source'),
            os.path.join(self.build_dir, self.builder)
        ]
        errno = sphinx_main(args)
        if errno:
            raise SystemExit(errno)

        if self.builder == 'latex':
            latex_dir = os.path.join(self.build_dir, 'latex')
            errno = subprocess.call(['make', 'all-pdf'], cwd=latex_dir)
            if errno:
                raise SystemExit(errno)
            print("PDF generated in:", os.path.join(latex_dir, 'Documentation.pdf'))

setup(
    name="qode",
    version="0.1.0",
    packages=find_packages(exclude=['tests', 'tests.*']),
    description="Symmetric implicit integrator for quadratic ODEs with spectral stepsize control",
    python_requires=">=3.9",
    install_requires=[
        "numpy",
    ],
    extras_require={
        "test": ["pytest", "scipy"],
        "docs": ["sphinx"],
    },
    entry_points={
        "console_scripts": ["qode-selftest=qode._selftest:main"],
    },
    cmdclass={'build_sphinx': BuildSphinx},
)
