"""
CSV generator for simulating product file drops.
"""

import random
from pathlib import Path
from typing import Dict, List, Optional

FIELDNAMES = ['id', 'nome', 'categoria', 'preco', 'estoque']

PRODUCT_NAMES = [
    "Notebook", "Mouse", "Teclado", "Monitor", "Headset",
    "Webcam", "Cadeira", "Mesa", "Impressora", "Roteador"
]

CATEGORIES = ["Eletronicos", "Perifericos", "Moveis", "Rede", ""]


class CSVGenerator:
    """Generates product CSV data for exercising the batch path."""

    def __init__(self, seed: Optional[int] = None, start_id: int = 1):
        self.random = random.Random(seed)
        self.record_counter = start_id

    def generate_product(self) -> Dict[str, str]:
        """Generate a single well-formed product row."""
        product = {
            'id': str(self.record_counter),
            'nome': f"{self.random.choice(PRODUCT_NAMES)} {self.record_counter}",
            'categoria': self.random.choice(CATEGORIES),
            'preco': f"{self.random.uniform(5.0, 5000.0):.2f}",
            'estoque': str(self.random.randint(0, 500)),
        }
        self.record_counter += 1
        return product

    def generate_malformed_product(self) -> Dict[str, str]:
        """A row the pipeline should still persist, with numeric fields coerced to zero."""
        product = self.generate_product()
        product['preco'] = self.random.choice(['abc', 'R$10', 'N/A', ''])
        product['estoque'] = self.random.choice(['muitos', '-', ''])
        return product

    def generate_incomplete_product(self) -> Dict[str, str]:
        """A row the pipeline should reject for missing identity."""
        product = self.generate_product()
        product[self.random.choice(['id', 'nome'])] = ''
        return product

    @staticmethod
    def render(products: List[Dict[str, str]], blank_line_every: int = 0) -> str:
        """Render rows as comma-separated text, optionally padded with blank lines."""
        lines = [','.join(FIELDNAMES)]
        for index, product in enumerate(products, start=1):
            lines.append(','.join(product.get(name, '') for name in FIELDNAMES))
            if blank_line_every and index % blank_line_every == 0:
                lines.append('')
        return '\n'.join(lines) + '\n'

    def generate_csv(self, output_path: str, num_records: int = 100) -> Path:
        """Generate a CSV file of well-formed products."""
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        products = [self.generate_product() for _ in range(num_records)]
        output_file.write_text(self.render(products), encoding='utf-8')

        print(f"✅ Generated {num_records} products in {output_file}")
        return output_file

    def generate_test_scenarios(self, output_dir: str) -> List[Path]:
        """Generate files covering the pipeline's edge cases."""
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        files = []

        print("Generating normal data scenario...")
        files.append(self.generate_csv(output_path / "produtos.csv", 50))

        print("Generating blank lines scenario...")
        products = [self.generate_product() for _ in range(20)]
        blank_file = output_path / "blank_lines.csv"
        blank_file.write_text('\n' + self.render(products, blank_line_every=3), encoding='utf-8')
        files.append(blank_file)

        print("Generating mixed quality scenario...")
        mixed = []
        for _ in range(30):
            roll = self.random.random()
            if roll < 0.2:
                mixed.append(self.generate_incomplete_product())
            elif roll < 0.4:
                mixed.append(self.generate_malformed_product())
            else:
                mixed.append(self.generate_product())
        mixed_file = output_path / "mixed_quality.csv"
        mixed_file.write_text(self.render(mixed), encoding='utf-8')
        files.append(mixed_file)

        print(f"✅ Generated test scenarios in {output_path}")
        return files
